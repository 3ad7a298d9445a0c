"""One extraction per call: initialize, prepare the cache, fetch.

The caller owns the automation session; a client can be re-used for several
sequential queries against the same long-lived session.
"""
from __future__ import annotations

import json
import time
from typing import Any, Iterable, Optional, Sequence

from . import config
from .config_validation import Entrypoint, validate_runtime_config
from .errors import ConfigError, ExtractorError
from .fetcher import ResilientFetcher
from .fingerprint_cache import FingerprintCache
from .logging_utils import _extractor_event
from .progress import ElapsedReport, EventKind, ProgressEvent, ProgressNotifier
from .rebuild import CacheMode, CacheRebuildCoordinator
from .session import AutomationSession
from .sites import Category, SiteProfile, profile_for
from .timeline import TimelineFetcher
from .utils import ensure_dirs


class SiteClient:
    def __init__(
        self,
        session: AutomationSession,
        profile: SiteProfile,
        *,
        notifier: Optional[ProgressNotifier] = None,
        cache: Optional[FingerprintCache] = None,
        entrypoint: Entrypoint = "cli",
    ) -> None:
        self.session = session
        self.profile = profile
        self.notifier = notifier or ProgressNotifier(
            silent=config.SILENT_DEFAULT, color=not config.NOCOLOR_DEFAULT
        )
        self.cache = cache or FingerprintCache()
        self.entrypoint = entrypoint

    @classmethod
    def for_category(cls, category: Category, session: AutomationSession, **kwargs: Any) -> "SiteClient":
        return cls(session, profile_for(category), **kwargs)

    @property
    def category(self) -> Category:
        return self.profile.category

    def _notify(self, kind: EventKind, is_final: bool = False) -> None:
        self.notifier.notify(ProgressEvent(self.category, kind, is_final=is_final))

    def handle(
        self,
        query: str,
        mode: Optional[CacheMode] = None,
        predefined: Optional[Iterable[Sequence[Any]]] = None,
        *,
        limit: Optional[int] = None,
        **url_options: Any,
    ) -> str:
        """Extract the raw text for ``query``; the text is returned unchanged.

        Paged profiles return a JSON array holding up to ``limit`` raw items.

        Any ``ExtractorError`` is reported once as a fatal event and re-raised.
        """

        try:
            self._notify(EventKind.INITIALIZE)
            validate_runtime_config(self.entrypoint)
            ensure_dirs()
            if mode is None:
                mode = CacheMode.from_str(config.CACHE_MODE_DEFAULT)
            target_url = self.profile.target_url(query, **url_options)
            self._notify(EventKind.INITIALIZE, is_final=True)

            coordinator = CacheRebuildCoordinator(
                self.session,
                self.cache,
                self.profile,
                self.notifier,
                probe_attempts=config.PROBE_MAX_ATTEMPTS,
                probe_backoff_ms=config.PROBE_INITIAL_BACKOFF_MS,
            )
            candidates = coordinator.prepare(mode, predefined)

            self._notify(EventKind.FETCH_RESULT)
            if self.profile.is_paged:
                items = TimelineFetcher(self.notifier, self.category).fetch(
                    self.session,
                    target_url,
                    candidates,
                    self.profile.extraction_script,
                    self.profile.scroll_script,
                    limit=config.TIMELINE_DEFAULT_ITEMS if limit is None else limit,
                    nav_retry_budget=config.FETCH_NAV_RETRY_BUDGET,
                )
                text = json.dumps(items, ensure_ascii=False)
            else:
                text = ResilientFetcher(self.notifier, self.category).fetch(
                    self.session,
                    target_url,
                    candidates,
                    self.profile.extraction_script,
                    nav_retry_budget=config.FETCH_NAV_RETRY_BUDGET,
                    backoff_ms=self.profile.backoff_ms,
                    retry_marker=self.profile.retry_marker,
                )
            self._notify(EventKind.FETCH_RESULT, is_final=True)
        except ExtractorError as exc:
            _extractor_event(
                "client",
                phase="failed",
                category=self.category.cache_id,
                error_code=exc.error_code,
                error_repr=repr(exc),
            )
            self.notifier.notify(ProgressEvent.fatal(self.category, exc))
            raise

        _extractor_event(
            "client", phase="done", category=self.category.cache_id, mode=mode.value, size=len(text)
        )
        return text

    def pause(self, seconds: int, safe: bool = True) -> bool:
        """Give the operator ``seconds`` to act in the browser window.

        Returns ``True`` when a safe pause was ended early with Ctrl-C.
        """

        self.notifier.notify(ProgressEvent.wait_secs(self.category, seconds, safe))
        try:
            time.sleep(seconds)
        except KeyboardInterrupt:
            if not safe:
                raise
            _extractor_event("client", phase="pause_interrupted", category=self.category.cache_id)
            return True
        return False

    def login(self, wait_seconds: Optional[int] = None) -> bool:
        """Open the sign-in page and wait while the operator logs in by hand.

        Needs a visible browser. Returns what :meth:`pause` returns.
        """

        try:
            if self.profile.login_url is None:
                raise ConfigError(f"{self.category.label} has no sign-in flow")
            if not config.GUI_MODE:
                raise ConfigError("signing in requires GUI mode")
            self.session.navigate(self.profile.login_url)
        except ExtractorError as exc:
            self.notifier.notify(ProgressEvent.fatal(self.category, exc))
            raise
        wait = config.LOGIN_WAIT_SECS if wait_seconds is None else wait_seconds
        # Ctrl-C only ends the wait outside interactive mode.
        return self.pause(wait, safe=self.entrypoint != "interactive")

    def elap(self) -> ElapsedReport:
        return self.notifier.elap(self.category)


__all__ = ["SiteClient"]
