"""memory.py - In-memory ordered state store.

Keeps a dict of records plus a sorted key list maintained with ``bisect``.
Used by the tests and by embedders that need no persistence.
"""

from __future__ import annotations

from bisect import bisect_left, insort
from typing import Iterator

from .state import KV, StateStore


class MemoryStore(StateStore):
    def __init__(self, query_engine=None) -> None:
        super().__init__(query_engine)
        self._data: dict[str, bytes] = {}
        self._keys: list[str] = []

    def _get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def _put(self, key: str, value: bytes) -> None:
        if key not in self._data:
            insort(self._keys, key)
        self._data[key] = value

    def _delete(self, key: str) -> None:
        if self._data.pop(key, None) is None:
            return
        idx = bisect_left(self._keys, key)
        del self._keys[idx]

    def _range(self, start_key: str, end_key: str) -> Iterator[KV]:
        lo = bisect_left(self._keys, start_key)
        hi = bisect_left(self._keys, end_key)
        for key in self._keys[lo:hi]:
            yield KV(key, self._data[key])

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: str) -> bool:
        return key in self._data
