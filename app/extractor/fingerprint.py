"""Fingerprint value type: a DOM child-index path from ``document.body``."""
from __future__ import annotations

import json
from typing import Any, Iterable


class Fingerprint(tuple):
    """Immutable ordered sequence of child indices, each in ``0..255``.

    Equality and ordering are the tuple's elementwise ones, so a fingerprint
    compares equal to a plain tuple with the same indices.
    """

    __slots__ = ()

    def __new__(cls, indices: Iterable[int] = ()) -> "Fingerprint":
        values = tuple(indices)
        for value in values:
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"fingerprint index must be int, got {value!r}")
            if not 0 <= value <= 255:
                raise ValueError(f"fingerprint index out of range: {value}")
        return super().__new__(cls, values)

    def __repr__(self) -> str:
        return f"Fingerprint({list(self)!r})"

    def is_prefix_of(self, other: Iterable[int]) -> bool:
        other_values = tuple(other)
        return len(self) <= len(other_values) and other_values[: len(self)] == tuple(self)

    def to_json(self) -> str:
        """Compact JSON array, e.g. ``[4,0,1]``."""

        return json.dumps(list(self), separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str) -> "Fingerprint":
        return cls.from_value(json.loads(text))

    @classmethod
    def from_value(cls, value: Any) -> "Fingerprint":
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"fingerprint must decode to a list, got {type(value).__name__}")
        return cls(value)


class ForkedFingerprint(tuple):
    """``(upper, lower)`` pair locating a list of sibling items.

    ``upper`` leads from ``document.body`` to the parent of the items and
    ``lower`` leads from one item down to the node holding its text. Cached
    as ``[[upper...],[lower...]]``.
    """

    __slots__ = ()

    def __new__(cls, upper: Iterable[int], lower: Iterable[int] = ()) -> "ForkedFingerprint":
        head = Fingerprint(upper)
        if not head:
            raise ValueError("forked fingerprint needs a non-empty upper path")
        return super().__new__(cls, (head, Fingerprint(lower)))

    @property
    def upper(self) -> Fingerprint:
        return self[0]

    @property
    def lower(self) -> Fingerprint:
        return self[1]

    def __repr__(self) -> str:
        return f"ForkedFingerprint({list(self.upper)!r}, {list(self.lower)!r})"

    def to_json(self) -> str:
        return f"[{self.upper.to_json()},{self.lower.to_json()}]"

    def to_payload(self) -> dict:
        return {"upper_idx": list(self.upper), "lower_idx": list(self.lower)}

    @classmethod
    def from_json(cls, text: str) -> "ForkedFingerprint":
        return cls.from_value(json.loads(text))

    @classmethod
    def from_value(cls, value: Any) -> "ForkedFingerprint":
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError(f"forked fingerprint must be a pair, got {value!r}")
        upper, lower = value
        return cls(Fingerprint.from_value(upper), Fingerprint.from_value(lower))


def common_prefix(left: Iterable[int], right: Iterable[int]) -> Fingerprint:
    """Return the elementwise longest common prefix of two paths."""

    matched = []
    for a, b in zip(left, right):
        if a != b:
            break
        matched.append(a)
    return Fingerprint(matched)


def split_at_fork(first: Iterable[int], second: Iterable[int]) -> ForkedFingerprint:
    """Split two equal-length sibling paths at the first index where they differ.

    The differing index itself belongs to neither half. Identical paths give
    an empty ``lower``.
    """

    left, right = tuple(first), tuple(second)
    if len(left) != len(right):
        raise ValueError(f"paths differ in length: {len(left)} != {len(right)}")
    for idx, (a, b) in enumerate(zip(left, right)):
        if a != b:
            return ForkedFingerprint(left[:idx], left[idx + 1 :])
    return ForkedFingerprint(left)


__all__ = ["Fingerprint", "ForkedFingerprint", "common_prefix", "split_at_fork"]
