"""chaincode.py - Command dispatcher for the ledgerkv operations.

``LedgerKV.invoke(function, args)`` routes an operation name and its string
arguments to a handler and wraps the outcome in a :class:`Response`. The set
of operations is the closed :class:`Operation` enum; any other name yields an
error response.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Sequence

from . import metrics
from .codec import (
    decode_attribute_list,
    decode_bulk_composite_keys,
    decode_bulk_records,
    encode_results,
)
from .exceptions import (
    InvalidArgumentsError,
    KeyNotFoundError,
    LedgerKVError,
    PartialBatchFailure,
    UnknownOperationError,
)
from .logger import get_logger
from .scan import ScanStats, collect_attributes, collect_kv, collect_resolved
from .state import StateStore

logger = get_logger(__name__)

# Value of an index entry: membership only, the data lives under the plain key.
INDEX_SENTINEL = b"\x00"


class Operation(str, Enum):
    PUT = "put"
    GET = "get"
    DELETE = "delete"
    PUT_ALL = "putAll"
    DELETE_ALL = "deleteAll"
    BULK_PUT = "bulkPut"
    BULK_CREATE_COMPOSITE_KEY = "bulkCreateCompositeKey"
    SCAN = "scan"
    SCAN_BY_PARTIAL_COMPOSITE_KEY = "scanByPartialCompositeKey"
    SCAN_BY_PARTIAL_COMPOSITE_KEY_FOR_ATTRIBUTES = "scanByPartialCompositeKeyForAttributes"
    QUERY = "query"

    @classmethod
    def names(cls) -> list[str]:
        return [op.value for op in cls]


class Status(IntEnum):
    OK = 200
    ERROR = 500


@dataclass(frozen=True)
class Response:
    status: Status
    payload: bytes | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == Status.OK

    @classmethod
    def success(cls, payload: bytes | None = None) -> Response:
        return cls(Status.OK, payload)

    @classmethod
    def error(cls, message: str) -> Response:
        return cls(Status.ERROR, None, message)


class LedgerKV:
    """Key-value chaincode over a :class:`StateStore`.

    Args:
        store: state store all operations read and write
        strict_get: report a missing key on ``get`` as a failure instead of
            returning an empty payload
    """

    def __init__(self, store: StateStore, strict_get: bool = False) -> None:
        self.store = store
        self.strict_get = strict_get
        self.last_scan_stats: ScanStats | None = None
        self._handlers: dict[Operation, tuple[Callable[..., bytes | None], int | None]] = {
            Operation.PUT: (self.put, 2),
            Operation.GET: (self.get, 1),
            Operation.DELETE: (self.delete, 1),
            Operation.PUT_ALL: (self.put_all, None),
            Operation.DELETE_ALL: (self.delete_all, None),
            Operation.BULK_PUT: (self.bulk_put, 1),
            Operation.BULK_CREATE_COMPOSITE_KEY: (self.bulk_create_composite_key, 1),
            Operation.SCAN: (self.scan, 2),
            Operation.SCAN_BY_PARTIAL_COMPOSITE_KEY: (self.scan_by_partial_composite_key, 2),
            Operation.SCAN_BY_PARTIAL_COMPOSITE_KEY_FOR_ATTRIBUTES: (
                self.scan_by_partial_composite_key_for_attributes,
                2,
            ),
            Operation.QUERY: (self.query, 1),
        }

    def init(self, args: Sequence[str] = ()) -> Response:
        logger.info("Chaincode Init")
        return Response.success()

    def invoke(self, function: str, args: Sequence[str]) -> Response:
        logger.info(f"Chaincode Invoke; function={function!r}")
        started = time.perf_counter()
        try:
            try:
                op = Operation(function)
            except ValueError:
                raise UnknownOperationError(function, Operation.names()) from None
            handler, arity = self._handlers[op]
            if arity is not None and len(args) != arity:
                raise InvalidArgumentsError(function, arity, len(args))
            response = Response.success(handler(*args))
        except LedgerKVError as e:
            logger.error(f"{function} failed: {e}")
            response = Response.error(str(e))
        except Exception as e:
            logger.exception(f"{function} failed unexpectedly")
            response = Response.error(f"{type(e).__name__}: {e}")
        label = function if function in Operation.names() else "unknown"
        metrics.invocations.labels(
            function=label, status="ok" if response.ok else "error"
        ).inc()
        metrics.invocation_seconds.labels(function=label).observe(
            time.perf_counter() - started
        )
        return response

    # -- CRUD ----------------------------------------------------------

    def put(self, key: str, value: str) -> None:
        logger.debug(f"Putting key={key!r}")
        self.store.put_state(key, value.encode("utf-8"))

    def get(self, key: str) -> bytes | None:
        logger.debug(f"Getting key={key!r}")
        value = self.store.get_state(key)
        if value is None and self.strict_get:
            raise KeyNotFoundError(key)
        return value

    def delete(self, key: str) -> None:
        logger.debug(f"Deleting key={key!r}")
        self.store.del_state(key)

    # -- bulk mutation -------------------------------------------------

    def bulk_put(self, payload: str) -> None:
        records = decode_bulk_records(payload)
        failed = []
        for kv in records:
            logger.debug(f"Putting key={kv.key!r}")
            try:
                self.store.put_state(kv.key, kv.value)
            except LedgerKVError as e:
                logger.error(f"Error Putting key={kv.key!r}: {e}")
                failed.append(kv.key)
        self._finish_batch(Operation.BULK_PUT, "putting keys", failed, len(records))

    def put_all(self, *args: str) -> None:
        """Put ``key1 value1 key2 value2 ...`` given as positional arguments."""
        if not args or len(args) % 2:
            raise InvalidArgumentsError(Operation.PUT_ALL.value, "an even number > 0", len(args))
        failed = []
        for key, value in zip(args[::2], args[1::2]):
            logger.debug(f"Putting key={key!r}")
            try:
                self.store.put_state(key, value.encode("utf-8"))
            except (LedgerKVError, UnicodeEncodeError) as e:
                logger.error(f"Error Putting key={key!r}: {e}")
                failed.append(key)
        self._finish_batch(Operation.PUT_ALL, "putting keys", failed, len(args) // 2)

    def delete_all(self, *keys: str) -> None:
        if not keys:
            raise InvalidArgumentsError(Operation.DELETE_ALL.value, "at least 1", 0)
        failed = []
        for key in keys:
            logger.debug(f"Deleting key={key!r}")
            try:
                self.store.del_state(key)
            except LedgerKVError as e:
                logger.error(f"Error Deleting key={key!r}: {e}")
                failed.append(key)
        self._finish_batch(Operation.DELETE_ALL, "deleting keys", failed, len(keys))

    def bulk_create_composite_key(self, payload: str) -> None:
        descriptors = decode_bulk_composite_keys(payload)
        failed = []
        for descriptor in descriptors:
            try:
                index_key = self.store.create_composite_key(
                    descriptor.object_type, descriptor.attributes
                )
            except LedgerKVError as e:
                logger.error(
                    f"Error Creating composite for objectType {descriptor.object_type!r}: {e}"
                )
                failed.append(descriptor.object_type)
                continue
            logger.debug(f"Putting composite key={index_key!r}")
            try:
                self.store.put_state(index_key, INDEX_SENTINEL)
            except LedgerKVError as e:
                logger.error(f"Error Putting composite key={index_key!r}: {e}")
                failed.append(index_key)
        self._finish_batch(
            Operation.BULK_CREATE_COMPOSITE_KEY,
            "creating composite keys",
            failed,
            len(descriptors),
        )

    @staticmethod
    def _finish_batch(op: Operation, action: str, failed: list[str], attempted: int) -> None:
        if not failed:
            return
        metrics.bulk_item_failures.labels(function=op.value).inc(len(failed))
        raise PartialBatchFailure(action, failed, attempted)

    # -- scans and queries ---------------------------------------------

    def scan(self, start_key: str, end_key: str) -> bytes:
        logger.debug(f"scan startKey={start_key!r} endKey={end_key!r}")
        stats = self._stats(Operation.SCAN)
        iterator = self.store.get_state_by_range(start_key, end_key)
        return encode_results(collect_kv(iterator, stats))

    def scan_by_partial_composite_key(self, object_type: str, attributes_json: str) -> bytes:
        attributes = decode_attribute_list(attributes_json)
        logger.debug(f"start GetStateByPartialCompositeKey {object_type!r} {attributes!r}")
        stats = self._stats(Operation.SCAN_BY_PARTIAL_COMPOSITE_KEY)
        iterator = self.store.get_state_by_partial_composite_key(object_type, attributes)
        return encode_results(collect_resolved(iterator, self.store, stats))

    def scan_by_partial_composite_key_for_attributes(
        self, object_type: str, attributes_json: str
    ) -> bytes:
        attributes = decode_attribute_list(attributes_json)
        logger.debug(f"start GetStateByPartialCompositeKey {object_type!r} {attributes!r}")
        stats = self._stats(Operation.SCAN_BY_PARTIAL_COMPOSITE_KEY_FOR_ATTRIBUTES)
        iterator = self.store.get_state_by_partial_composite_key(object_type, attributes)
        return encode_results(collect_attributes(iterator, self.store, stats))

    def query(self, query_string: str) -> bytes:
        logger.debug(f"getQueryResultForQueryString queryString={query_string!r}")
        stats = self._stats(Operation.QUERY)
        return encode_results(collect_kv(self.store.get_query_result(query_string), stats))

    def _stats(self, op: Operation) -> ScanStats:
        self.last_scan_stats = ScanStats(function=op.value)
        return self.last_scan_stats
