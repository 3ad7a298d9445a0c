from __future__ import annotations

import logging
import sys
from pathlib import Path

from . import config

LOGGER = logging.getLogger("extractor")
_LOGGER_INITIALISED = False


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``.

    Only warnings reach stderr so the lines the notifier keeps open on stdout
    are never broken up.
    """

    global _LOGGER_INITIALISED

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.WARNING)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def ensure_dirs() -> None:
    """Ensure that the cache, lock and log directories exist."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.CACHE_DIR.mkdir(parents=True, exist_ok=True)
    config.LOCK_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def percent_encode(text: str) -> str:
    """Percent-encode the reserved characters of a query string value.

    Only the reserved set is encoded; non-ASCII text is passed through so the
    browser performs its own UTF-8 encoding.
    """

    reserved = " !\"#$%&'()*+,/:;=?@[]"
    return "".join(f"%{ord(ch):02X}" if ch in reserved else ch for ch in text)


__all__ = [
    "ensure_dirs",
    "log_line",
    "percent_encode",
]
