"""Lock-guarded on-disk persistence of fingerprints, one file per category.

File format: one compact JSON entry per line (an integer array, or a pair of
arrays for forked fingerprints), newest first, closed by a literal ``-``
sentinel line. Every mutation holds an exclusive cross-process
lock for its category; ``load`` does not lock, so it can observe a concurrent
writer's half-written file (and report it as corrupted).
"""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence, Type, Union

import filelock

from . import config
from .errors import CacheCorrupted, CacheNotFound
from .fingerprint import Fingerprint, ForkedFingerprint
from .logging_utils import _extractor_event

if TYPE_CHECKING:
    from .sites import Category

SENTINEL = "-"

Entry = Union[Fingerprint, ForkedFingerprint]


def encode_entry(fingerprint: Union[Entry, Sequence[int]]) -> str:
    """Cache line for ``fingerprint``, newline included."""

    if not isinstance(fingerprint, (Fingerprint, ForkedFingerprint)):
        fingerprint = Fingerprint(fingerprint)
    return f"{fingerprint.to_json()}\n"


def fallback_payload(fingerprint: Union[Entry, Sequence[int]]) -> str:
    """Whole-file content used when appending to a cache that does not exist."""

    return f"{encode_entry(fingerprint)}{SENTINEL}"


def parse_cache_text(text: str, entry_type: Type[Entry] = Fingerprint) -> List[Entry]:
    """Decode a cache file; a single bad line corrupts the whole file.

    ``-`` may only appear as the last non-empty line.
    """

    entries: List[Entry] = []
    lines = text.rstrip().splitlines()
    for line_no, raw in enumerate(lines, start=1):
        line = raw.strip()
        if line == SENTINEL:
            if line_no != len(lines):
                raise CacheCorrupted(f"line {line_no}: entries after end marker", line_no=line_no)
            break
        if not line:
            raise CacheCorrupted(f"line {line_no}: blank line", line_no=line_no)
        try:
            entry = entry_type.from_json(line)
        except (ValueError, TypeError) as exc:
            raise CacheCorrupted(f"line {line_no}: {line[:80]!r}", line_no=line_no) from exc
        if not entry:
            raise CacheCorrupted(f"line {line_no}: empty fingerprint", line_no=line_no)
        entries.append(entry)
    return entries


class FingerprintCache:
    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        lock_dir: Optional[Path] = None,
        *,
        lock_timeout: float = -1,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else config.CACHE_DIR
        self.lock_dir = Path(lock_dir) if lock_dir is not None else config.LOCK_DIR
        self.lock_timeout = lock_timeout

    def path_for(self, category: "Category") -> Path:
        return self.cache_dir / category.cache_id

    def exists(self, category: "Category") -> bool:
        return self.path_for(category).is_file()

    def _lock(self, category: "Category") -> filelock.FileLock:
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return filelock.FileLock(str(self.lock_dir / category.cache_id), timeout=self.lock_timeout)

    def try_seed(self, category: "Category", bundled_defaults: str) -> bool:
        """Create the cache with ``bundled_defaults`` iff it is absent.

        Returns ``True`` when the file was written.
        """

        path = self.path_for(category)
        with self._lock(category):
            if path.exists():
                _extractor_event("cache", op="try_seed", category=category.cache_id, written=False)
                return False
            path.write_text(bundled_defaults, encoding="utf-8")
        _extractor_event("cache", op="try_seed", category=category.cache_id, written=True)
        return True

    def replace(self, category: "Category", payload: str) -> None:
        path = self.path_for(category)
        with self._lock(category):
            path.write_text(payload, encoding="utf-8")
        _extractor_event("cache", op="replace", category=category.cache_id, size=len(payload))

    def append(
        self,
        category: "Category",
        new_line_if_exists: str,
        fallback_payload_if_absent: str,
    ) -> None:
        """Prepend ``new_line_if_exists``; create from the fallback when absent."""

        path = self.path_for(category)
        with self._lock(category):
            if path.exists():
                with path.open("r+", encoding="utf-8") as fh:
                    current = fh.read()
                    fh.seek(0)
                    fh.write(new_line_if_exists + current)
                    fh.truncate()
                created = False
            else:
                path.write_text(fallback_payload_if_absent, encoding="utf-8")
                created = True
        _extractor_event("cache", op="append", category=category.cache_id, created=created)

    def load(self, category: "Category", entry_type: Type[Entry] = Fingerprint) -> List[Entry]:
        path = self.path_for(category)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise CacheNotFound(f"no cache for {category.cache_id} at {path}") from None
        try:
            entries = parse_cache_text(text, entry_type)
        except CacheCorrupted as exc:
            _extractor_event("cache", op="load", category=category.cache_id, corrupted=str(exc))
            raise
        _extractor_event("cache", op="load", category=category.cache_id, entries=len(entries))
        return entries


__all__ = [
    "SENTINEL",
    "Entry",
    "FingerprintCache",
    "encode_entry",
    "fallback_payload",
    "parse_cache_text",
]
