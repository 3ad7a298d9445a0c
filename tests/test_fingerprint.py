import pytest

from app.extractor.fingerprint import Fingerprint, ForkedFingerprint, common_prefix, split_at_fork

PROBE_A = [4, 0, 1, 0, 1, 0, 1, 1, 2, 1, 1, 9, 0, 2, 0, 0, 1]
PROBE_B = [4, 0, 1, 0, 1, 0, 1, 1, 2, 1, 1, 9, 0, 3, 0, 0, 1]


def test_fingerprint_json_is_compact() -> None:
    assert Fingerprint([4, 0, 1]).to_json() == "[4,0,1]"
    assert Fingerprint.from_json(" [11, 1, 1, 3, 3] ") == (11, 1, 1, 3, 3)


@pytest.mark.parametrize("bad", [[256], [-1], [1.5], ["1"], [True]])
def test_fingerprint_rejects_out_of_range_or_non_int(bad: list) -> None:
    with pytest.raises((ValueError, TypeError)):
        Fingerprint(bad)


def test_fingerprint_from_json_requires_array() -> None:
    with pytest.raises(ValueError):
        Fingerprint.from_json('{"a": 1}')


def test_prefix_comparison_is_elementwise() -> None:
    fp = Fingerprint([4, 0, 1])
    assert fp.is_prefix_of([4, 0, 1, 9])
    assert fp.is_prefix_of(fp)
    assert not fp.is_prefix_of([4, 0])
    assert not fp.is_prefix_of([4, 1, 1])


def test_common_prefix_of_bundled_paths() -> None:
    derived = common_prefix(PROBE_A, PROBE_B)
    assert derived == Fingerprint([4, 0, 1, 0, 1, 0, 1, 1, 2, 1, 1, 9, 0])
    assert len(derived) == 13


@pytest.mark.parametrize(
    "left, right",
    [
        ([1, 2, 3], [1, 2, 3]),
        ([1, 2, 3], [1, 2]),
        ([5], [6]),
        ([], [1]),
        ([0, 0, 7, 1], [0, 0, 7, 2, 9]),
    ],
)
def test_common_prefix_is_maximal_prefix_of_both(left: list, right: list) -> None:
    prefix = common_prefix(left, right)
    assert prefix.is_prefix_of(left)
    assert prefix.is_prefix_of(right)
    longer = len(prefix) + 1
    assert not (
        len(left) >= longer and len(right) >= longer and left[:longer] == right[:longer]
    )


def test_forked_fingerprint_json_round_trip() -> None:
    line = "[[2,0,0,1,3,0,0,0,0,0,2,0,0,2,1,0],[0,0,0,0,0,1,1,1]]"
    forked = ForkedFingerprint.from_json(line)

    assert forked.upper == Fingerprint([2, 0, 0, 1, 3, 0, 0, 0, 0, 0, 2, 0, 0, 2, 1, 0])
    assert forked.lower == Fingerprint([0, 0, 0, 0, 0, 1, 1, 1])
    assert forked.to_json() == line
    assert forked.to_payload() == {"upper_idx": list(forked.upper), "lower_idx": [0, 0, 0, 0, 0, 1, 1, 1]}


@pytest.mark.parametrize("bad", ["[[1,2]]", "[1,2]", "[[],[1]]", "[[1],[2],[3]]", '{"upper": [1]}'])
def test_forked_fingerprint_requires_non_empty_pair(bad: str) -> None:
    with pytest.raises((ValueError, TypeError)):
        ForkedFingerprint.from_json(bad)


def test_split_at_fork() -> None:
    assert split_at_fork([2, 0, 5, 0, 1], [2, 0, 6, 0, 1]) == ForkedFingerprint([2, 0], [0, 1])
    assert split_at_fork([2, 0, 5], [2, 0, 5]) == ForkedFingerprint([2, 0, 5], [])
    with pytest.raises(ValueError):
        split_at_fork([1, 2], [1])
    with pytest.raises(ValueError):
        split_at_fork([1, 2], [3, 2])
