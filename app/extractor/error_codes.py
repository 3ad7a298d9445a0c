from __future__ import annotations

"""Centralised error code taxonomy for extraction failures.

These codes travel on every ``ExtractorError`` and are included in structured
logs so that a caller can tell failure kinds apart (and map them to distinct
exit codes) without inspecting messages.
"""


class ErrorCode:
    TRANSPORT_TIMEOUT = "transport_timeout"
    TRANSPORT_REJECTED = "transport_rejected"
    CACHE_CORRUPTED = "cache_corrupted"
    CACHE_NOT_FOUND = "cache_not_found"
    CACHE_REBUILD_FAIL = "cache_rebuild_fail"
    ALL_CACHES_INVALID = "all_caches_invalid"
    DATA_NOT_REACHABLE = "data_fetched_not_reachable"
    LOGIN_REQUIRED = "login_required"
    CONFIG = "invalid_config"
    INTERNAL = "internal_error"


__all__ = ["ErrorCode"]
