"""Progress notifier: shared event log plus the terminal rendering rules.

Every retry loop in the extractor reports through a single
:class:`ProgressNotifier` handle. The rendering is line-oriented: a phase start
leaves its line open so the matching finish can append ``ok``, and retry kinds
grow a row of dots until their terminating event closes the line.
"""
from __future__ import annotations

import re
import sys
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, TextIO

from .errors import (
    AllCachesInvalid,
    CacheCorrupted,
    CacheNotFound,
    CacheRebuildFail,
    ConfigError,
    DataFetchedNotReachable,
    LoginRequired,
    RejectReason,
    TransportRejected,
    TransportTimeout,
)
from .logging_utils import _extractor_event

if TYPE_CHECKING:
    from .sites import Category

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")
_ERROR_PREFIX = "\x1b[31;1merror: \x1b[0m"


class EventKind(str, Enum):
    INITIALIZE = "initialize"
    BUILD_CACHE = "build_cache"
    FETCH_RESULT = "fetch_result"
    CACHE_RETRY = "cache_retry"
    CONNECT_TIMEOUT_RETRY = "connect_timeout_retry"
    SRV_TEMP_UNAV_RETRY = "srv_temp_unav_retry"
    TRY_NEXT_CACHE = "try_next_cache"
    SIMPLE_PROGRESS = "simple_progress"
    FATAL_ERROR = "fatal_error"
    USER_OUTPUT = "user_output"
    WAIT_SECS = "wait_secs"


PHASE_TEXT = {
    EventKind.INITIALIZE: "Initializing",
    EventKind.BUILD_CACHE: "Building cache",
    EventKind.FETCH_RESULT: "Fetching result",
}

RETRY_TEXT = {
    EventKind.CACHE_RETRY: "Build cache failed, retrying",
    EventKind.CONNECT_TIMEOUT_RETRY: "Connection timeout, retrying",
    EventKind.SRV_TEMP_UNAV_RETRY: "Service temporarily unavailable, retrying",
    EventKind.TRY_NEXT_CACHE: "Trying other caches",
}


@dataclass(frozen=True)
class ProgressEvent:
    category: "Category"
    kind: EventKind
    is_final: bool = False
    current: int = 0
    total: int = 0
    text: str = ""
    error: Optional[BaseException] = None
    count: int = 0
    safe: bool = True
    elapsed: float = 0.0

    @classmethod
    def simple_progress(cls, category: "Category", current: int, total: int) -> "ProgressEvent":
        return cls(
            category,
            EventKind.SIMPLE_PROGRESS,
            is_final=current >= total,
            current=current,
            total=total,
        )

    @classmethod
    def fatal(cls, category: "Category", error: BaseException) -> "ProgressEvent":
        return cls(category, EventKind.FATAL_ERROR, is_final=True, error=error)

    @classmethod
    def user_output(cls, category: "Category", text: str) -> "ProgressEvent":
        return cls(category, EventKind.USER_OUTPUT, is_final=True, text=text)

    @classmethod
    def wait_secs(cls, category: "Category", count: int, safe: bool) -> "ProgressEvent":
        return cls(category, EventKind.WAIT_SECS, is_final=True, count=count, safe=safe)


@dataclass(frozen=True)
class ElapsedReport:
    category: "Category"
    prepare_ms: int
    cache_ms: int
    fetch_ms: int
    total_ms: int

    def render(self) -> str:
        return (
            f"({self.category.label} | PREPARE:{self.prepare_ms}ms | CACHE:{self.cache_ms}ms"
            f" | FETCH:{self.fetch_ms}ms | ALL:{self.total_ms}ms)"
        )


def describe_error(category: "Category", error: BaseException) -> str:
    """Return the one-line message shown for a terminal error."""

    label = category.label
    if isinstance(error, AllCachesInvalid):
        return f"all caches invalid ({label})"
    if isinstance(error, DataFetchedNotReachable):
        return f"website is not reachable ({label})"
    if isinstance(error, CacheRebuildFail):
        return f"rebuild cache failed ({label}): {error.kind.value}"
    if isinstance(error, CacheCorrupted):
        return f"cache corrupted ({label})"
    if isinstance(error, CacheNotFound):
        return f"cache not found ({label})"
    if isinstance(error, LoginRequired):
        return f"login required ({label})"
    if isinstance(error, ConfigError):
        return f"{error} ({label})"
    if isinstance(error, TransportTimeout):
        if error.command.startswith("evaluate"):
            return f"script evaluation timeout ({label})"
        return f"connection timeout ({label})"
    if isinstance(error, TransportRejected):
        if error.reason is RejectReason.NETWORK:
            return "internet connection failed"
        if error.reason is RejectReason.PROXY:
            return "proxy connection failed"
        return f"webdriver cmd rejected ({label}, {error.command}): {error.detail}"
    return f"unexpected ({label}): {error!r}"


class ProgressNotifier:
    """Shared progress handle injected into every extraction component."""

    def __init__(
        self,
        *,
        silent: bool = False,
        color: bool = True,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._silent = silent
        self._color = color
        self._stdout = stdout
        self._stderr = stderr
        self._started = time.monotonic()
        self._log: List[ProgressEvent] = []

    # toggles ---------------------------------------------------------------

    def set_silent(self, silent: bool) -> None:
        with self._lock:
            self._silent = silent

    def set_color(self, color: bool) -> None:
        with self._lock:
            self._color = color

    @property
    def events(self) -> List[ProgressEvent]:
        with self._lock:
            return list(self._log)

    # output ----------------------------------------------------------------

    def _emit(self, text: str, *, err: bool = False, force: bool = False) -> None:
        if not text:
            return
        if not err and self._silent and not force:
            return
        if not self._color:
            text = _ANSI_ESCAPE.sub("", text)
        stream = (self._stderr or sys.stderr) if err else (self._stdout or sys.stdout)
        stream.write(text)
        stream.flush()

    def _previous(self) -> Optional[ProgressEvent]:
        return self._log[-1] if self._log else None

    def _previous_open(self) -> bool:
        prev = self._previous()
        return prev is not None and not prev.is_final

    def _newline_if_open(self) -> str:
        return "\n" if self._previous_open() else ""

    # rendering -------------------------------------------------------------

    def notify(self, event: ProgressEvent) -> None:
        with self._lock:
            stamped = replace(event, elapsed=time.monotonic() - self._started)
            kind = stamped.kind
            if kind in PHASE_TEXT:
                self._render_phase(stamped)
            elif kind in RETRY_TEXT:
                if not self._render_retry(stamped):
                    return
            elif kind is EventKind.SIMPLE_PROGRESS:
                self._render_simple_progress(stamped)
            elif kind is EventKind.FATAL_ERROR:
                self._render_fatal(stamped)
            elif kind is EventKind.USER_OUTPUT:
                self._render_user_output(stamped)
            elif kind is EventKind.WAIT_SECS:
                self._render_wait(stamped)
            self._log.append(stamped)

    def _render_phase(self, event: ProgressEvent) -> None:
        label = event.category.label
        text = PHASE_TEXT[event.kind]
        if not event.is_final:
            self._emit(f"{self._newline_if_open()}[{label}] {text}...")
            return

        prev = self._previous()
        if (
            prev is not None
            and prev.kind is event.kind
            and prev.category == event.category
            and not prev.is_final
        ):
            self._emit("ok\n")
        else:
            self._emit(f"{self._newline_if_open()}[{label}] {text}...ok\n")

    def _render_retry(self, event: ProgressEvent) -> bool:
        """Render a repeatable event; ``False`` means it was absorbed."""

        prev = self._previous()
        same_kind = prev is not None and prev.kind is event.kind
        if event.is_final:
            if not same_kind:
                return False
            self._emit("\n")
            return True

        continuing = same_kind and prev.category == event.category and not prev.is_final
        if not continuing:
            self._emit(
                f"{self._newline_if_open()}[{event.category.label}] {RETRY_TEXT[event.kind]}"
            )
        self._emit(".")
        return True

    def _render_simple_progress(self, event: ProgressEvent) -> None:
        prev = self._previous()
        out = ""
        if (
            prev is not None
            and prev.kind is EventKind.SIMPLE_PROGRESS
            and prev.category == event.category
            and prev.total == event.total
        ):
            out = "\r"
        else:
            out = self._newline_if_open()
        percent = int(event.current / event.total * 100) if event.total else 100
        out += f"[{event.category.label}] {event.current}/{event.total} ({percent}%)"
        if event.is_final:
            out += "\n"
        self._emit(out)

    def _render_fatal(self, event: ProgressEvent) -> None:
        error = event.error if event.error is not None else RuntimeError("unknown")
        message = describe_error(event.category, error)
        self._emit(self._newline_if_open(), err=True)
        self._emit(f"{_ERROR_PREFIX}{message}\n", err=True)
        _extractor_event(
            "fatal",
            category=event.category.cache_id,
            error_code=getattr(error, "error_code", None),
            message=message,
        )

    def _render_user_output(self, event: ProgressEvent) -> None:
        # The newline only closes a visible line; the output itself ignores silent.
        self._emit(self._newline_if_open())
        # Underscore-prefixed output is recorded but kept off the terminal.
        if not event.text.startswith("_"):
            self._emit(f"{event.text}\n", force=True)

    def _render_wait(self, event: ProgressEvent) -> None:
        self._emit(self._newline_if_open())
        out = f"[{event.category.label}] Please finish in {event.count} seconds, "
        if event.safe:
            out += "press \x1b[40;1mCtrl-C\x1b[0m here if finished."
        else:
            out += "do \x1b[40;1mNOT\x1b[0m press other keys."
        self._emit(out + "\n", force=True)

    # timing ----------------------------------------------------------------

    def elap(self, category: "Category") -> ElapsedReport:
        """Summarise per-phase durations for ``category`` and print them.

        The log is scanned backward, so each phase reports its most recent
        start/finish pair and the total runs from the latest INITIALIZE start.
        The line is printed even in silent mode.
        """

        with self._lock:
            spans = {kind: [None, None] for kind in PHASE_TEXT}
            total_start: Optional[float] = None
            total_end: Optional[float] = None

            for event in reversed(self._log):
                if event.category != category:
                    continue
                if total_end is None:
                    total_end = event.elapsed
                span = spans.get(event.kind)
                if span is None:
                    continue
                slot = 1 if event.is_final else 0
                if span[slot] is None:
                    span[slot] = event.elapsed
                    # The total spans the latest query only.
                    if event.kind is EventKind.INITIALIZE and not event.is_final:
                        total_start = event.elapsed

            def _span_ms(span: list) -> int:
                start, end = span
                if start is None:
                    return 0
                if end is None or end < start:
                    end = start
                return int(round((end - start) * 1000))

            total_ms = 0
            if total_start is not None and total_end is not None:
                total_ms = max(0, int(round((total_end - total_start) * 1000)))

            report = ElapsedReport(
                category=category,
                prepare_ms=_span_ms(spans[EventKind.INITIALIZE]),
                cache_ms=_span_ms(spans[EventKind.BUILD_CACHE]),
                fetch_ms=_span_ms(spans[EventKind.FETCH_RESULT]),
                total_ms=total_ms,
            )
            self._emit(report.render() + "\n", force=True)
            return report


__all__ = [
    "EventKind",
    "ProgressEvent",
    "ElapsedReport",
    "ProgressNotifier",
    "describe_error",
    "PHASE_TEXT",
    "RETRY_TEXT",
]
