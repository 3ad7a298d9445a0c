import pytest

from app.extractor.error_codes import ErrorCode
from app.extractor.errors import (
    AllCachesInvalid,
    CacheCorrupted,
    CacheNotFound,
    CacheRebuildFail,
    CacheRebuildFailKind,
    ConfigError,
    DataFetchedNotReachable,
    ExtractorError,
    RejectReason,
    TransportRejected,
    TransportTimeout,
)


@pytest.mark.parametrize(
    "error, code",
    [
        (TransportTimeout("t", command="navigate"), ErrorCode.TRANSPORT_TIMEOUT),
        (TransportRejected("r", reason=RejectReason.PROXY), ErrorCode.TRANSPORT_REJECTED),
        (CacheCorrupted("bad", line_no=2), ErrorCode.CACHE_CORRUPTED),
        (CacheNotFound(), ErrorCode.CACHE_NOT_FOUND),
        (CacheRebuildFail(CacheRebuildFailKind.UPATH_LEN_ZERO), ErrorCode.CACHE_REBUILD_FAIL),
        (AllCachesInvalid(), ErrorCode.ALL_CACHES_INVALID),
        (DataFetchedNotReachable(), ErrorCode.DATA_NOT_REACHABLE),
        (ConfigError("x"), ErrorCode.CONFIG),
    ],
)
def test_every_error_kind_has_its_own_code(error: ExtractorError, code: str) -> None:
    assert isinstance(error, ExtractorError)
    assert error.error_code == code


def test_error_codes_are_distinct() -> None:
    codes = [value for name, value in vars(ErrorCode).items() if name.isupper()]
    assert len(codes) == len(set(codes))


def test_error_details_survive() -> None:
    rejected = TransportRejected("navigate rejected", reason=RejectReason.NETWORK, command="navigate", detail="dns")
    assert rejected.reason is RejectReason.NETWORK
    assert rejected.detail == "dns"
    assert CacheCorrupted("x", line_no=3).line_no == 3
    assert CacheRebuildFail(CacheRebuildFailKind.UPATH_VAL_NOT_MATCHED).kind.value == "UpathValNotMatched"
    assert str(AllCachesInvalid()) == "AllCachesInvalid"
    assert ExtractorError("x", error_code=ErrorCode.INTERNAL).error_code == "internal_error"
