"""Collect items from an infinitely scrolling list, one batch per pass.

Each pass reads every loaded item under the candidate's parent node, keeps the
ones not seen before and scrolls the last of them into view so the page loads
the next batch. Progress is reported as ``current/total`` on one line.
"""
from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, List, Optional, Sequence

from . import config
from .errors import (
    AllCachesInvalid,
    DataFetchedNotReachable,
    ExtractorError,
    LoginRequired,
    RejectReason,
    TransportRejected,
    TransportTimeout,
)
from .fingerprint import ForkedFingerprint
from .logging_utils import _extractor_event
from .progress import EventKind, ProgressEvent, ProgressNotifier
from .retry_policy import AXIS_CANDIDATE, AXIS_NAVIGATION, decide_retry
from .session import AutomationSession

if TYPE_CHECKING:
    from .sites import Category

# Passes in a row without a new item before the list is taken as finished.
STALL_LIMIT = 10
STALL_WAIT_SECONDS = 1.0


def _parse_batch(raw: str) -> List[str]:
    try:
        batch = json.loads(raw or "[]")
    except ValueError as exc:
        raise TransportRejected(
            "item script returned unusable output",
            reason=RejectReason.SCRIPT,
            command="evaluate_async",
            detail=raw[:200],
        ) from exc
    if not isinstance(batch, list) or not all(isinstance(item, str) for item in batch):
        raise TransportRejected(
            "item script must return a list of strings",
            reason=RejectReason.SCRIPT,
            command="evaluate_async",
            detail=raw[:200],
        )
    return batch


class TimelineFetcher:
    def __init__(self, notifier: ProgressNotifier, category: "Category") -> None:
        self.notifier = notifier
        self.category = category

    def _notify(self, kind: EventKind, is_final: bool) -> None:
        self.notifier.notify(ProgressEvent(self.category, kind, is_final=is_final))

    def _reach(self, session: AutomationSession, target_url: str, budget: int) -> None:
        while budget > 0:
            try:
                session.navigate(target_url)
            except TransportTimeout as exc:
                self._notify(EventKind.CONNECT_TIMEOUT_RETRY, False)
                budget -= 1
                if not decide_retry(AXIS_NAVIGATION, exc, remaining=budget):
                    break
                continue

            if "login" in session.current_url():
                _extractor_event("timeline", phase="login_required", url=target_url)
                raise LoginRequired(f"{target_url} redirected to sign-in")
            self._notify(EventKind.CONNECT_TIMEOUT_RETRY, True)
            return

        _extractor_event("timeline", phase="not_reachable", url=target_url)
        raise DataFetchedNotReachable(f"could not reach {target_url}")

    def fetch(
        self,
        session: AutomationSession,
        target_url: str,
        candidates: Sequence[ForkedFingerprint],
        extraction_script: str,
        scroll_script: str,
        *,
        limit: int = config.TIMELINE_DEFAULT_ITEMS,
        nav_retry_budget: int = config.FETCH_NAV_RETRY_BUDGET,
    ) -> List[str]:
        """Return up to ``limit`` distinct raw items, in page order.

        Once at least one item was collected, later failures end the walk and
        keep what was gathered instead of raising.
        """

        if not candidates:
            _extractor_event("timeline", phase="no_candidates", url=target_url)
            raise AllCachesInvalid("no candidate fingerprints")

        total = max(1, min(limit, config.TIMELINE_MAX_ITEMS))
        self._reach(session, target_url, nav_retry_budget)

        collected: List[str] = []
        seen = set()
        cursor = 0
        stalled = 0
        previous_left: Optional[int] = None

        while len(collected) < total:
            candidate = candidates[cursor]
            try:
                raw = session.evaluate_async(extraction_script, [candidate.to_payload()])
                batch = _parse_batch(raw)
            except TransportTimeout as exc:
                cursor += 1
                remaining = len(candidates) - cursor
                if decide_retry(AXIS_CANDIDATE, exc, attempt=cursor, remaining=remaining):
                    self._notify(EventKind.TRY_NEXT_CACHE, False)
                    continue
                if collected:
                    break
                self._notify(EventKind.TRY_NEXT_CACHE, True)
                raise AllCachesInvalid(f"all {len(candidates)} candidates timed out") from exc
            except ExtractorError:
                if collected:
                    break
                raise

            self._notify(EventKind.TRY_NEXT_CACHE, True)

            for item in batch:
                if item in seen:
                    continue
                seen.add(item)
                collected.append(item)
                if len(collected) == total:
                    break

            left = total - len(collected)
            self.notifier.notify(ProgressEvent.simple_progress(self.category, len(collected), total))

            if left == previous_left:
                stalled += 1
                time.sleep(STALL_WAIT_SECONDS)
            else:
                previous_left = left
                stalled = 0
            if stalled >= STALL_LIMIT:
                _extractor_event("timeline", phase="stalled", url=target_url, left=left)
                break

            if left > 0:
                try:
                    session.evaluate(scroll_script, [len(batch)])
                except ExtractorError:
                    if collected:
                        break
                    raise

        _extractor_event(
            "timeline", phase="done", url=target_url, cursor=cursor, items=len(collected), total=total
        )
        return collected


__all__ = ["TimelineFetcher", "STALL_LIMIT"]
