from __future__ import annotations

from typing import Optional

from .errors import TransportTimeout
from .logging_utils import _extractor_event

# Independent retry axes. Each one owns its own budget; a retry on one axis
# never resets another.
AXIS_PROBE = "anchor_probe"
AXIS_NAVIGATION = "navigation"
AXIS_CANDIDATE = "candidate"
AXIS_SERVICE = "service_unavailable"


def next_backoff_ms(current_ms: int) -> int:
    """Return the doubled wait used before the next attempt."""

    return max(1, current_ms) * 2


def is_retryable(error: BaseException) -> bool:
    """Only timeout-classified transport failures are ever retried."""

    return isinstance(error, TransportTimeout)


def decide_retry(
    axis: str,
    error: BaseException,
    *,
    attempt: Optional[int] = None,
    remaining: Optional[int] = None,
) -> bool:
    """Decide whether a failed attempt on ``axis`` should be retried.

    The caller still owns its budget; this only classifies the failure and
    records the decision.
    """

    retryable = is_retryable(error)
    if remaining is not None and remaining <= 0:
        kind = "capped"
        will_retry = False
    elif retryable:
        kind = "retryable"
        will_retry = True
    else:
        kind = "non_retryable"
        will_retry = False

    _extractor_event(
        "state",
        phase="retry_decision",
        axis=axis,
        kind=kind,
        attempt=attempt,
        remaining=remaining,
        error_code=getattr(error, "error_code", None),
        error_repr=repr(error),
        will_retry=will_retry,
    )
    return will_retry


__all__ = [
    "AXIS_PROBE",
    "AXIS_NAVIGATION",
    "AXIS_CANDIDATE",
    "AXIS_SERVICE",
    "next_backoff_ms",
    "is_retryable",
    "decide_retry",
]
