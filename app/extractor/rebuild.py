"""Choose how the fingerprint cache is refreshed before a fetch."""
from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence

from . import config
from .anchor_probe import derive
from .errors import CacheCorrupted
from .fingerprint_cache import Entry, FingerprintCache, encode_entry, fallback_payload
from .logging_utils import _extractor_event
from .progress import EventKind, ProgressEvent, ProgressNotifier
from .session import AutomationSession
from .sites import SiteProfile

REMOTE_SNAPSHOT_SCRIPT = "return document.getElementsByTagName('pre')[0].innerText;"


class CacheMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    REBUILD = "rebuild"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "CacheMode":
        """Parse a user-supplied mode; anything unrecognised means ``LOCAL``."""

        normalized = (value or "").strip().lower()
        if normalized == "remote":
            return cls.REMOTE
        if normalized in {"no", "rebuild"}:
            return cls.REBUILD
        return cls.LOCAL


def unescape_snapshot(text: str) -> str:
    """Normalise the raw ``<pre>`` text of a shared snapshot into file content."""

    return text.replace('"', "").replace("\\n", "\n")


class CacheRebuildCoordinator:
    """Runs exactly one refresh mode and returns the candidate list."""

    def __init__(
        self,
        session: AutomationSession,
        cache: FingerprintCache,
        profile: SiteProfile,
        notifier: ProgressNotifier,
        *,
        probe_attempts: int = config.PROBE_MAX_ATTEMPTS,
        probe_backoff_ms: int = config.PROBE_INITIAL_BACKOFF_MS,
    ) -> None:
        self.session = session
        self.cache = cache
        self.profile = profile
        self.notifier = notifier
        self.probe_attempts = probe_attempts
        self.probe_backoff_ms = probe_backoff_ms

    @property
    def category(self):
        return self.profile.category

    def prepare(
        self,
        mode: CacheMode,
        predefined: Optional[Iterable[Sequence[Any]]] = None,
    ) -> List[Entry]:
        if predefined is not None:
            candidates = [self.profile.entry_type.from_value(entry) for entry in predefined]
            _extractor_event(
                "rebuild", mode="predefined", category=self.category.cache_id, entries=len(candidates)
            )
            return candidates

        _extractor_event("rebuild", mode=mode.value, category=self.category.cache_id)
        if mode is CacheMode.REMOTE:
            return self._adopt_remote()
        if mode is CacheMode.REBUILD:
            return self._rebuild()
        return self._seed_local()

    def _seed_local(self) -> List[Entry]:
        self.cache.try_seed(self.category, self.profile.bundled_defaults)
        return self.cache.load(self.category, self.profile.entry_type)

    def _adopt_remote(self) -> List[Entry]:
        self.session.navigate(self.profile.remote_url)
        snapshot = unescape_snapshot(self.session.evaluate(REMOTE_SNAPSHOT_SCRIPT, []))
        self.cache.replace(self.category, snapshot)
        return self.cache.load(self.category, self.profile.entry_type)

    def _rebuild(self) -> List[Entry]:
        self.notifier.notify(ProgressEvent(self.category, EventKind.BUILD_CACHE))
        probe_a, probe_b = self.profile.probes
        fingerprint = derive(
            self.session,
            probe_a,
            probe_b,
            notifier=self.notifier,
            category=self.category,
            max_attempts=self.probe_attempts,
            initial_backoff_ms=self.probe_backoff_ms,
            strategy=self.profile.strategy,
        )
        self.cache.append(self.category, encode_entry(fingerprint), fallback_payload(fingerprint))
        self.notifier.notify(ProgressEvent(self.category, EventKind.BUILD_CACHE, is_final=True))
        try:
            return self.cache.load(self.category, self.profile.entry_type)
        except CacheCorrupted as exc:
            # Older lines are unreadable but the fresh one is known good.
            _extractor_event(
                "rebuild",
                phase="corrupted_tail",
                category=self.category.cache_id,
                line_no=exc.line_no,
            )
            return [fingerprint]


__all__ = ["CacheMode", "CacheRebuildCoordinator", "REMOTE_SNAPSHOT_SCRIPT", "unescape_snapshot"]
