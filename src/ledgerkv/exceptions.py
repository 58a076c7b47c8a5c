"""exceptions.py - Exception hierarchy for ledgerkv operations.

Defines exceptions for:
- Store faults raised by a state store backend
- Malformed keys and payloads
- Bulk operations where some items failed
- Dispatcher argument and operation-name errors
"""

from __future__ import annotations


class LedgerKVError(Exception):
    """Base exception for all ledgerkv errors."""

    pass


class StoreFault(LedgerKVError):
    """Raised when the underlying store fails to read, write or iterate.

    Always fatal to the current operation.
    """

    pass


class MalformedKeyError(LedgerKVError):
    """Raised when a key cannot be encoded or a composite key cannot be decoded.

    Examples:
        - Attribute contains the reserved delimiter ``\\x00``
        - Simple key starts with the composite key namespace
        - Key passed to split was not produced by create_composite_key
    """

    pass


class MalformedPayloadError(LedgerKVError):
    """Raised when a structured argument is not valid JSON or has the wrong shape."""

    pass


class PartialBatchFailure(LedgerKVError):
    """Raised after a bulk operation in which one or more items failed.

    Items that succeeded stay written; nothing is rolled back.
    """

    def __init__(self, operation: str, failed: list[str], attempted: int):
        self.operation = operation
        self.failed = failed
        self.attempted = attempted
        super().__init__(
            f"There was one or more errors occurred when {operation}: "
            f"{len(failed)} of {attempted} items failed"
        )


class InvalidArgumentsError(LedgerKVError):
    """Raised when an operation receives the wrong number of arguments."""

    def __init__(self, function: str, expected: int | str, got: int):
        self.function = function
        self.expected = expected
        self.got = got
        super().__init__(
            f"Incorrect number of arguments for '{function}'. Expecting {expected}, got {got}"
        )


class UnknownOperationError(LedgerKVError):
    """Raised when the dispatcher is asked for an operation it does not define."""

    def __init__(self, function: str, known: list[str]):
        self.function = function
        self.known = known
        super().__init__(
            f"Invalid invoke function name '{function}'. Expecting one of: "
            + ", ".join(known)
        )


class KeyNotFoundError(LedgerKVError):
    """Raised by ``get`` in strict mode when the key is absent."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Key '{key}' does not exist")
