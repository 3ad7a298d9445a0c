"""Exception hierarchy shared by the probe, cache and fetch layers."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from .error_codes import ErrorCode


class ExtractorError(Exception):
    """Base class; ``error_code`` is one of :class:`ErrorCode`."""

    error_code: str = ErrorCode.INTERNAL

    def __init__(self, message: str = "", *, error_code: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if error_code is not None:
            self.error_code = error_code


class TransportError(ExtractorError):
    """A command sent through the automation session failed."""

    def __init__(self, message: str, *, command: str = "", detail: str = "") -> None:
        super().__init__(message)
        self.command = command
        self.detail = detail


class TransportTimeout(TransportError):
    """The driver gave up waiting (page load, script or implicit timeout)."""

    error_code = ErrorCode.TRANSPORT_TIMEOUT


class RejectReason(str, Enum):
    NETWORK = "network"
    PROXY = "proxy"
    SCRIPT = "script"
    OTHER = "other"


class TransportRejected(TransportError):
    """Any non-timeout transport failure; never retried."""

    error_code = ErrorCode.TRANSPORT_REJECTED

    def __init__(
        self,
        message: str,
        *,
        reason: RejectReason = RejectReason.OTHER,
        command: str = "",
        detail: str = "",
    ) -> None:
        super().__init__(message, command=command, detail=detail)
        self.reason = reason


class CacheCorrupted(ExtractorError):
    error_code = ErrorCode.CACHE_CORRUPTED

    def __init__(self, message: str = "", *, line_no: Optional[int] = None) -> None:
        super().__init__(message)
        self.line_no = line_no


class CacheNotFound(ExtractorError):
    error_code = ErrorCode.CACHE_NOT_FOUND


class CacheRebuildFailKind(str, Enum):
    UPATH_NOT_FOUND = "UpathNotFound"
    UPATH_LEN_ZERO = "UpathLenZero"
    UPATH_LEN_NOT_MATCHED = "UpathLenNotMatched"
    UPATH_VAL_NOT_MATCHED = "UpathValNotMatched"


class CacheRebuildFail(ExtractorError):
    error_code = ErrorCode.CACHE_REBUILD_FAIL

    def __init__(self, kind: CacheRebuildFailKind) -> None:
        super().__init__(f"cache rebuild failed: {kind.value}")
        self.kind = kind


class AllCachesInvalid(ExtractorError):
    """Every candidate fingerprint was exhausted at extraction time."""

    error_code = ErrorCode.ALL_CACHES_INVALID


class DataFetchedNotReachable(ExtractorError):
    """Navigation never once succeeded within the retry budget."""

    error_code = ErrorCode.DATA_NOT_REACHABLE


class LoginRequired(ExtractorError):
    """The site redirected the target page to its sign-in flow."""

    error_code = ErrorCode.LOGIN_REQUIRED


class ConfigError(ExtractorError, ValueError):
    error_code = ErrorCode.CONFIG


__all__ = [
    "ExtractorError",
    "TransportError",
    "TransportTimeout",
    "TransportRejected",
    "RejectReason",
    "CacheCorrupted",
    "CacheNotFound",
    "CacheRebuildFailKind",
    "CacheRebuildFail",
    "AllCachesInvalid",
    "DataFetchedNotReachable",
    "LoginRequired",
    "ConfigError",
]
