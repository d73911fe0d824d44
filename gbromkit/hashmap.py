"""String-keyed hash map using FNV-1a, split into 16-bit indexed buckets."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, NamedTuple

_FNV_OFFSET_BASIS = 0x811C9DC5
_FNV_PRIME = 16777619
_HASH_BITS = 32
_HALF_BITS = _HASH_BITS // 2
_HASH_MASK = (1 << _HASH_BITS) - 1
_HALF_MASK = (1 << _HALF_BITS) - 1


def fnv1a(key: str | bytes) -> int:
    """Return the 32-bit FNV-1a hash of a key (text is hashed as UTF-8)."""
    data = key.encode("utf-8") if isinstance(key, str) else key
    value = _FNV_OFFSET_BASIS
    for byte in data:
        value ^= byte
        value = (value * _FNV_PRIME) & _HASH_MASK
    return value


class _Entry(NamedTuple):
    upper: int
    key: str
    value: Any


class HashMap:
    """Map from strings to values.

    The lower half of a key's hash selects a bucket, the upper half speeds up
    collision resolution. Adding a key that is already present shadows the
    older entry instead of replacing it; removing it uncovers the older one.
    Iterating yields the stored values, bucket by bucket, newest first.
    """

    def __init__(self) -> None:
        self._buckets: dict[int, list[_Entry]] = {}
        self._size = 0

    @staticmethod
    def _split(key: str) -> tuple[int, int]:
        hashed = fnv1a(key)
        return hashed & _HALF_MASK, hashed >> _HALF_BITS

    def _find(self, key: str) -> tuple[list[_Entry] | None, int]:
        index, upper = self._split(key)
        bucket = self._buckets.get(index)
        if bucket is not None:
            for position in range(len(bucket) - 1, -1, -1):
                entry = bucket[position]
                if entry.upper == upper and entry.key == key:
                    return bucket, position
        return None, -1

    def add(self, key: str, value: Any) -> Any:
        """Add an entry for key and return its value."""
        index, upper = self._split(key)
        self._buckets.setdefault(index, []).append(_Entry(upper, key, value))
        self._size += 1
        return value

    def remove(self, key: str) -> bool:
        """Remove the newest entry for key; return whether one was found."""
        bucket, position = self._find(key)
        if bucket is None:
            return False
        del bucket[position]
        if not bucket:
            del self._buckets[self._split(key)[0]]
        self._size -= 1
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value of the newest entry for key, or default."""
        bucket, position = self._find(key)
        return default if bucket is None else bucket[position].value

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self._find(key)[0] is not None

    def __iter__(self) -> Iterator[Any]:
        for index in sorted(self._buckets):
            for entry in reversed(self._buckets[index]):
                yield entry.value

    def __len__(self) -> int:
        return self._size

    def clear(self) -> None:
        """Remove every entry."""
        self._buckets.clear()
        self._size = 0