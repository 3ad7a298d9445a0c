from __future__ import annotations

from typing import Literal

from . import config
from .errors import ConfigError
from .logging_utils import _extractor_event
from .utils import log_line

Entrypoint = Literal["cli", "interactive", "tests"]

_KNOWN_CACHE_MODES = {"local", "remote", "no", "rebuild"}


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _extractor_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ConfigError(message)


def _clamp(field_name: str, value: int, adjusted: int, *, entrypoint: Entrypoint) -> None:
    _extractor_event(
        "state",
        phase="config",
        context="runtime_validation",
        kind="config_adjustment",
        field=field_name,
        value=value,
        adjusted=adjusted,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {field_name}={value} is out of range; clamping to {adjusted}.")
    setattr(config, field_name, adjusted)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ConfigError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments (retry budgets, unknown cache mode) are logged but do
    not raise.
    """

    if config.SOCKS5_PROXY and not config.is_valid_socks5(config.SOCKS5_PROXY):
        _raise_config_error(
            "socks5 proxy is not a valid value",
            entrypoint=entrypoint,
            error="invalid_socks5_proxy",
        )

    timeout_fields = [
        ("PAGE_LOAD_TIMEOUT_MS", "page load timeout is not a valid value"),
        ("SCRIPT_TIMEOUT_MS", "script timeout is not a valid value"),
    ]
    for field_name, message in timeout_fields:
        if getattr(config, field_name) <= 0:
            _raise_config_error(message, entrypoint=entrypoint, error="invalid_timeout")

    for field_name in ("PROBE_MAX_ATTEMPTS", "FETCH_NAV_RETRY_BUDGET", "PROBE_INITIAL_BACKOFF_MS"):
        value = getattr(config, field_name)
        if value < 1:
            _clamp(field_name, value, 1, entrypoint=entrypoint)

    if config.CACHE_MODE_DEFAULT not in _KNOWN_CACHE_MODES:
        _extractor_event(
            "state",
            phase="config",
            context="runtime_validation",
            kind="config_adjustment",
            field="CACHE_MODE_DEFAULT",
            value=config.CACHE_MODE_DEFAULT,
            adjusted="local",
            entrypoint=entrypoint,
        )
        log_line(f"[CONFIG] unknown cache mode {config.CACHE_MODE_DEFAULT!r}; using local.")
        config.CACHE_MODE_DEFAULT = "local"


__all__ = ["validate_runtime_config", "Entrypoint"]
