"""Derive a container fingerprint by probing two known anchor texts."""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Union

from . import config
from .errors import (
    CacheRebuildFail,
    CacheRebuildFailKind,
    RejectReason,
    TransportRejected,
    TransportTimeout,
)
from .fingerprint import Fingerprint, ForkedFingerprint, common_prefix, split_at_fork
from .logging_utils import _extractor_event
from .progress import EventKind, ProgressEvent, ProgressNotifier
from .retry_policy import AXIS_PROBE, decide_retry, next_backoff_ms
from .session import AutomationSession

if TYPE_CHECKING:
    from .sites import Category

# Pre-order DFS from document.body; the first node (document order) whose
# rendered text equals the anchor wins. Always returns a JSON array.
LOCATE_SCRIPT = r"""
var anchor = arguments[0];
function search(node, route) {
    var count = node.childNodes.length;
    for (var i = 0; i < count; i++) {
        var child = node.childNodes[i];
        var here = route.concat([i]);
        if (child.innerText && child.innerText === anchor) {
            return here;
        }
        var found = search(child, here);
        if (found !== null) {
            return found;
        }
    }
    return null;
}
return JSON.stringify(search(document.body, []) || []);
"""


class DerivationStrategy(str, Enum):
    COMMON_PREFIX = "common_prefix"
    EXACT = "exact"
    FORK = "fork"


@dataclass(frozen=True)
class AnchorProbeSpec:
    url: str
    anchor_text: str


def _parse_path(raw: str) -> Fingerprint:
    try:
        return Fingerprint.from_value(json.loads(raw or "[]"))
    except (ValueError, TypeError) as exc:
        raise TransportRejected(
            "locate returned an unusable path",
            reason=RejectReason.SCRIPT,
            command="evaluate",
            detail=raw[:200],
        ) from exc


def locate(
    session: AutomationSession,
    url: str,
    anchor_text: str,
    wait_before_search_ms: int,
) -> Fingerprint:
    """Return the path to the first node whose text equals ``anchor_text``.

    An empty fingerprint means "not found yet"; transport errors propagate.
    """

    session.navigate(url)
    time.sleep(wait_before_search_ms / 1000)
    found = _parse_path(session.evaluate(LOCATE_SCRIPT, [anchor_text]))
    _extractor_event("probe", url=url, wait_ms=wait_before_search_ms, path=list(found))
    return found


def combine(
    first: Fingerprint, second: Fingerprint, strategy: DerivationStrategy
) -> Union[Fingerprint, ForkedFingerprint]:
    """Combine two located paths into the fingerprint that gets cached."""

    if strategy is DerivationStrategy.FORK:
        # Two sibling items: their paths share a parent and differ at one index.
        if len(first) != len(second):
            raise CacheRebuildFail(CacheRebuildFailKind.UPATH_LEN_NOT_MATCHED)
        try:
            return split_at_fork(first, second)
        except ValueError:
            raise CacheRebuildFail(CacheRebuildFailKind.UPATH_LEN_ZERO) from None

    if strategy is DerivationStrategy.EXACT:
        if len(first) != len(second):
            raise CacheRebuildFail(CacheRebuildFailKind.UPATH_LEN_NOT_MATCHED)
        if first != second:
            raise CacheRebuildFail(CacheRebuildFailKind.UPATH_VAL_NOT_MATCHED)
        return first

    prefix = common_prefix(first, second)
    if not prefix:
        # An empty array is not a loadable cache line.
        raise CacheRebuildFail(CacheRebuildFailKind.UPATH_LEN_ZERO)
    return prefix


def derive(
    session: AutomationSession,
    probe_a: AnchorProbeSpec,
    probe_b: AnchorProbeSpec,
    *,
    notifier: Optional[ProgressNotifier] = None,
    category: Optional["Category"] = None,
    max_attempts: int = config.PROBE_MAX_ATTEMPTS,
    initial_backoff_ms: int = config.PROBE_INITIAL_BACKOFF_MS,
    strategy: DerivationStrategy = DerivationStrategy.COMMON_PREFIX,
) -> Union[Fingerprint, ForkedFingerprint]:
    """Locate both anchors, retrying timeouts, and combine their paths."""

    def _notify(is_final: bool) -> None:
        if notifier is not None and category is not None:
            notifier.notify(ProgressEvent(category, EventKind.CACHE_RETRY, is_final=is_final))

    probes = [probe_a, probe_b]
    found: List[Optional[Fingerprint]] = [None, None]
    wait_ms = initial_backoff_ms

    for attempt in range(1, max_attempts + 1):
        for idx, probe in enumerate(probes):
            if found[idx] is not None:
                continue
            try:
                path = locate(session, probe.url, probe.anchor_text, wait_ms)
            except TransportTimeout as exc:
                if not decide_retry(AXIS_PROBE, exc, attempt=attempt, remaining=max_attempts - attempt):
                    _extractor_event("probe", phase="gave_up", url=probe.url, attempts=attempt)
                continue
            if path:
                found[idx] = path

        if all(path is not None for path in found):
            _notify(True)
            break

        _notify(False)
        wait_ms = next_backoff_ms(wait_ms)

    first, second = found
    if first is None or second is None:
        _extractor_event(
            "probe",
            phase="exhausted",
            attempts=max_attempts,
            found_a=first is not None,
            found_b=second is not None,
        )
        raise CacheRebuildFail(CacheRebuildFailKind.UPATH_NOT_FOUND)

    derived = combine(first, second, strategy)
    _extractor_event(
        "probe",
        phase="derived",
        strategy=strategy.value,
        path_a=list(first),
        path_b=list(second),
        fingerprint=derived.to_json(),
    )
    return derived


__all__ = [
    "AnchorProbeSpec",
    "DerivationStrategy",
    "LOCATE_SCRIPT",
    "locate",
    "combine",
    "derive",
]
