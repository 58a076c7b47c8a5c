"""state.py - State store interface consumed by the ledgerkv core.

A state store is an ordered key-value store over string keys and byte values.
Concrete backends implement four primitives (get, put, delete and an ordered
range snapshot); everything else (range and partial composite key iterators,
rich queries, composite key helpers) is built here on top of them.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from . import keys
from .exceptions import LedgerKVError, MalformedKeyError, StoreFault
from .logger import get_logger
from .utils import assumption

logger = get_logger(__name__)


@dataclass(frozen=True)
class KV:
    """A single record: string key and raw byte value."""

    key: str
    value: bytes


class StateIterator:
    """Forward-only, non-restartable iterator over records in key order.

    Must be closed after use; use it as a context manager so the close
    happens on every exit path::

        with store.get_state_by_range("a", "b") as it:
            for kv in it:
                ...
    """

    def __init__(self, source: Iterable[KV], description: str = "") -> None:
        self._source: Iterator[KV] = iter(source)
        self.description = description
        self.closed = False

    def __iter__(self) -> StateIterator:
        return self

    def __next__(self) -> KV:
        if self.closed:
            raise StoreFault(f"iterator {self.description!r} is closed")
        try:
            return next(self._source)
        except StopIteration:
            raise
        except LedgerKVError:
            raise
        except Exception as e:
            raise StoreFault(f"iteration over {self.description!r} failed: {e}") from e

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        close = getattr(self._source, "close", None)
        if close is not None:
            close()
        logger.debug(f"Closed iterator {self.description!r}")

    def __enter__(self) -> StateIterator:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class StateStore(ABC):
    """Ordered key-value store adapter.

    Absent keys read as ``None``; an explicitly stored empty value reads as
    ``b""``. Backend failures surface as :class:`StoreFault`.
    """

    def __init__(self, query_engine=None) -> None:
        if query_engine is None:
            from .query import SelectorQueryEngine

            query_engine = SelectorQueryEngine()
        self.query_engine = query_engine
        self._lock = threading.RLock()

    # -- backend primitives --------------------------------------------

    @abstractmethod
    def _get(self, key: str) -> bytes | None: ...

    @abstractmethod
    def _put(self, key: str, value: bytes) -> None: ...

    @abstractmethod
    def _delete(self, key: str) -> None: ...

    @abstractmethod
    def _range(self, start_key: str, end_key: str) -> Iterable[KV]:
        """Records with ``start_key <= key < end_key`` in ascending key order."""

    # -- public API ----------------------------------------------------

    def get_state(self, key: str) -> bytes | None:
        self._check_key(key)
        with self._lock:
            return self._guard("get", key, self._get, key)

    def put_state(self, key: str, value: bytes) -> None:
        self._check_key(key)
        assert assumption(value, bytes, bytearray)
        with self._lock:
            self._guard("put", key, self._put, key, bytes(value))

    def del_state(self, key: str) -> None:
        self._check_key(key)
        with self._lock:
            self._guard("delete", key, self._delete, key)

    def get_state_by_range(self, start_key: str, end_key: str) -> StateIterator:
        """Iterate simple keys in ``[start_key, end_key)``.

        Empty bounds are open; composite keys are never included.
        """
        start, end = keys.simple_key_range(start_key, end_key)
        return self._iterator(start, end, f"range[{start_key!r}, {end_key!r})")

    def get_state_by_partial_composite_key(
        self, object_type: str, attributes: Sequence[str]
    ) -> StateIterator:
        start, end = keys.partial_key_range(object_type, attributes)
        return self._iterator(start, end, f"partial[{object_type!r}, {list(attributes)!r}]")

    def get_query_result(self, query: str) -> StateIterator:
        """Run a rich query over the simple keys of the store."""
        with self._lock:
            records = self._snapshot(keys.FIRST_SIMPLE_KEY, keys.MAX_UNICODE_RUNE)
        return StateIterator(self.query_engine.execute(query, records), "query")

    def create_composite_key(self, object_type: str, attributes: Sequence[str]) -> str:
        return keys.create_composite_key(object_type, attributes)

    def split_composite_key(self, key: str) -> tuple[str, list[str]]:
        return keys.split_composite_key(key)

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- helpers -------------------------------------------------------

    def _iterator(self, start: str, end: str, description: str) -> StateIterator:
        with self._lock:
            records = self._snapshot(start, end)
        return StateIterator(records, description)

    def _snapshot(self, start: str, end: str) -> list[KV]:
        # Materialized under the lock so later writes (e.g. re-fetches
        # during a scan) cannot disturb the iteration.
        try:
            return list(self._range(start, end))
        except LedgerKVError:
            raise
        except Exception as e:
            raise StoreFault(f"range [{start!r}, {end!r}) failed: {e}") from e

    @staticmethod
    def _check_key(key: str) -> None:
        if not isinstance(key, str):
            raise StoreFault(f"key must be a string, got {type(key).__name__}")
        if not key:
            raise StoreFault("key must not be an empty string")
        try:
            key.encode("utf-8")
        except UnicodeEncodeError as e:
            raise StoreFault(f"key {key!r} is not valid utf8") from e

    @staticmethod
    def _guard(op: str, key: str, func, *args):
        try:
            return func(*args)
        except (StoreFault, MalformedKeyError):
            raise
        except Exception as e:
            raise StoreFault(f"{op} of key {key!r} failed: {e}") from e
