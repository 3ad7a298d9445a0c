"""Structured ``[EXTRACTOR][LABEL] key=value`` log lines.

Values are rendered with ``repr`` after a little normalisation: enums log their
value, paths log as plain strings, ``None`` fields are left out and long text
(page snippets, script output) is clipped to :data:`MAX_VALUE_CHARS`.
"""
from __future__ import annotations

from enum import Enum
from pathlib import PurePath
from typing import Any, Dict

from .utils import log_line

MAX_VALUE_CHARS = 200


def _loggable(value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    elif isinstance(value, PurePath):
        value = str(value)
    if isinstance(value, str) and len(value) > MAX_VALUE_CHARS:
        return value[:MAX_VALUE_CHARS] + f"...(+{len(value) - MAX_VALUE_CHARS})"
    return value


def format_fields(fields: Dict[str, Any]) -> str:
    """Render ``fields`` sorted by key, with ``phase`` always first."""

    keys = sorted(k for k, v in fields.items() if v is not None)
    if "phase" in keys:
        keys.remove("phase")
        keys.insert(0, "phase")
    return ", ".join(f"{k}={_loggable(fields[k])!r}" for k in keys)


def _extractor_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Write one extractor event to the log file.

    With no ``label`` the ``phase`` names the event; otherwise ``phase`` is
    kept as the first payload field.
    """

    if label and phase:
        fields["phase"] = phase
    tag = (label or phase or "event").upper()
    try:
        log_line(f"[EXTRACTOR][{tag}] {format_fields(fields)}")
    except Exception:
        # A failed log write never aborts an extraction.
        return


__all__ = ["_extractor_event", "format_fields", "MAX_VALUE_CHARS"]
