"""Configuration constants for the locator-cache extractor."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(
    os.getenv("EXTRACTOR_DATA_DIR", str(Path.home() / ".extractor" / "v1"))
)
CACHE_DIR: Path = DATA_DIR / "cache"
LOCK_DIR: Path = DATA_DIR / "lock"
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"

# Shared snapshots maintained by peers; one plain-text file per cache id.
REMOTE_CACHE_BASE_URL: str = os.getenv(
    "EXTRACTOR_REMOTE_CACHE_BASE",
    "https://raw.githubusercontent.com/imichael2e2/mafa-cache/master",
).rstrip("/")

CACHE_MODE_DEFAULT: str = (
    os.getenv("EXTRACTOR_CACHE_MODE", "local").strip().lower() or "local"
)


def _parse_int(env_var: str, default: int) -> int:
    """Parse an integer from the environment; unparsable values give ``default``."""

    try:
        return int(os.getenv(env_var, str(default)))
    except ValueError:
        return default


def _parse_timeout_ms(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in milliseconds from the environment with bounds."""

    return max(minimum, _parse_int(env_var, default))


# WebDriver timeouts (milliseconds), enforced by the browser driver itself.
PAGE_LOAD_TIMEOUT_MS: int = _parse_timeout_ms("EXTRACTOR_PAGE_LOAD_TIMEOUT_MS", 30000)
SCRIPT_TIMEOUT_MS: int = _parse_timeout_ms("EXTRACTOR_SCRIPT_TIMEOUT_MS", 30000)

SOCKS5_PROXY: str = os.getenv("EXTRACTOR_SOCKS5_PROXY", "").strip()
GUI_MODE: bool = os.getenv("EXTRACTOR_GUI", "0").strip().lower() not in {"0", "false", ""}
BROWSER_BINARY: str = os.getenv("EXTRACTOR_BROWSER_BINARY", "").strip()

# Anchor probing: attempts per probe and the wait before the first DOM search.
PROBE_MAX_ATTEMPTS: int = _parse_int("EXTRACTOR_PROBE_MAX_ATTEMPTS", 5)
PROBE_INITIAL_BACKOFF_MS: int = _parse_int("EXTRACTOR_PROBE_INITIAL_BACKOFF_MS", 500)

# Fetching: navigation + evaluation passes shared by one extraction.
FETCH_NAV_RETRY_BUDGET: int = _parse_int("EXTRACTOR_FETCH_NAV_RETRY_BUDGET", 5)

# Timelines: items per query are capped; the login flow gets a fixed window.
TIMELINE_MAX_ITEMS: int = 8000
TIMELINE_DEFAULT_ITEMS: int = _parse_int("EXTRACTOR_TIMELINE_ITEMS", 10)
LOGIN_WAIT_SECS: int = _parse_int("EXTRACTOR_LOGIN_WAIT_SECS", 60)

SILENT_DEFAULT: bool = os.getenv("EXTRACTOR_SILENT", "0").strip().lower() not in {"0", "false", ""}
NOCOLOR_DEFAULT: bool = (
    os.getenv("EXTRACTOR_NOCOLOR", "0").strip().lower() not in {"0", "false", ""}
    or "NO_COLOR" in os.environ
)


def remote_cache_url(cache_id: str) -> str:
    """Return the shared snapshot URL for ``cache_id``."""

    return f"{REMOTE_CACHE_BASE_URL}/{cache_id}"


def is_valid_socks5(value: str) -> bool:
    """Return ``True`` when ``value`` is a ``host:port`` SOCKS5 address."""

    host, sep, port = (value or "").strip().rpartition(":")
    if not sep or not host or not port.isdigit():
        return False
    return 0 < int(port) < 65536
