"""Fetch content by trying cached fingerprints in order.

Three budgets are tracked independently: the navigation budget (shared by
every pass of the loop), the candidate cursor (advanced only by an extraction
timeout) and the backoff, doubled after each evaluated pass.
"""
from __future__ import annotations

import time
from typing import TYPE_CHECKING, Optional, Sequence

from . import config
from .errors import AllCachesInvalid, DataFetchedNotReachable, TransportTimeout
from .fingerprint import Fingerprint
from .logging_utils import _extractor_event
from .progress import EventKind, ProgressEvent, ProgressNotifier
from .retry_policy import (
    AXIS_CANDIDATE,
    AXIS_NAVIGATION,
    AXIS_SERVICE,
    decide_retry,
    next_backoff_ms,
)
from .session import AutomationSession

if TYPE_CHECKING:
    from .sites import Category


class ResilientFetcher:
    def __init__(self, notifier: ProgressNotifier, category: "Category") -> None:
        self.notifier = notifier
        self.category = category

    def _notify(self, kind: EventKind, is_final: bool) -> None:
        self.notifier.notify(ProgressEvent(self.category, kind, is_final=is_final))

    def fetch(
        self,
        session: AutomationSession,
        target_url: str,
        candidates: Sequence[Fingerprint],
        extraction_script: str,
        *,
        nav_retry_budget: int = config.FETCH_NAV_RETRY_BUDGET,
        backoff_ms: int = 10,
        retry_marker: Optional[str] = None,
    ) -> str:
        """Return the raw text extracted with the first working candidate.

        Raises ``AllCachesInvalid`` when every candidate timed out (or there
        were none), ``DataFetchedNotReachable`` when navigation never once
        succeeded. Non-timeout transport errors propagate untouched.
        """

        if not candidates:
            _extractor_event("fetch", phase="no_candidates", url=target_url)
            raise AllCachesInvalid("no candidate fingerprints")

        budget = nav_retry_budget
        cursor = 0
        wait_ms = backoff_ms
        reached = False
        result: Optional[str] = None

        while budget > 0:
            try:
                session.navigate(target_url)
            except TransportTimeout as exc:
                self._notify(EventKind.CONNECT_TIMEOUT_RETRY, False)
                budget -= 1
                if not decide_retry(AXIS_NAVIGATION, exc, remaining=budget):
                    break
                continue

            reached = True
            self._notify(EventKind.CONNECT_TIMEOUT_RETRY, True)

            candidate = candidates[cursor]
            time.sleep(wait_ms / 1000)
            try:
                text = session.evaluate_async(extraction_script, [list(candidate)])
            except TransportTimeout as exc:
                cursor += 1
                remaining = len(candidates) - cursor
                if not decide_retry(AXIS_CANDIDATE, exc, attempt=cursor, remaining=remaining):
                    self._notify(EventKind.TRY_NEXT_CACHE, True)
                    _extractor_event("fetch", phase="candidates_exhausted", tried=cursor)
                    raise AllCachesInvalid(f"all {len(candidates)} candidates timed out") from exc
                self._notify(EventKind.TRY_NEXT_CACHE, False)
            else:
                if retry_marker and retry_marker in text:
                    self._notify(EventKind.SRV_TEMP_UNAV_RETRY, False)
                    _extractor_event(
                        "state",
                        phase="retry_decision",
                        axis=AXIS_SERVICE,
                        kind="retryable",
                        remaining=budget - 1,
                        will_retry=budget - 1 > 0,
                    )
                else:
                    if retry_marker:
                        self._notify(EventKind.SRV_TEMP_UNAV_RETRY, True)
                    result = text
                    break

            budget -= 1
            wait_ms = next_backoff_ms(wait_ms)

        self._notify(EventKind.TRY_NEXT_CACHE, True)

        if not reached:
            _extractor_event("fetch", phase="not_reachable", url=target_url)
            raise DataFetchedNotReachable(f"could not reach {target_url}")
        if result is None:
            _extractor_event("fetch", phase="budget_exhausted", url=target_url, cursor=cursor)
            raise AllCachesInvalid("retry budget exhausted without a usable result")

        _extractor_event("fetch", phase="done", url=target_url, cursor=cursor, size=len(result))
        return result


__all__ = ["ResilientFetcher"]
