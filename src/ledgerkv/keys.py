"""keys.py - Composite key codec and key validation.

A composite key is laid out as::

    NS + object_type + DELIM + attr_1 + DELIM + ... + attr_n + DELIM

with ``NS == DELIM == "\\x00"``, the smallest code point. Every component is
terminated by the delimiter, so the encoding of an attribute prefix is always a
string prefix of the encoding of any longer attribute list that shares it.
Range scans over an index use ``[prefix, prefix + MAX_UNICODE_RUNE)``.

Components may not contain ``"\\x00"`` or ``"\\U0010ffff"``; such input is
rejected rather than escaped. Composite keys all start with ``"\\x00"`` and so
sort before (and can never collide with) simple keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .exceptions import MalformedKeyError

MIN_UNICODE_RUNE = "\x00"
MAX_UNICODE_RUNE = "\U0010ffff"
COMPOSITE_KEY_NAMESPACE = MIN_UNICODE_RUNE
DELIMITER = MIN_UNICODE_RUNE

# Lowest possible simple key; range scans starting at "" begin here so that
# composite keys stay out of simple key scans.
FIRST_SIMPLE_KEY = "\x01"


@dataclass
class CompositeKey:
    """Composite key descriptor: object type plus ordered attribute values."""

    object_type: str
    attributes: list[str] = field(default_factory=list)

    def encode(self) -> str:
        return create_composite_key(self.object_type, self.attributes)


def _validate_component(value: str, what: str) -> None:
    if not isinstance(value, str):
        raise MalformedKeyError(f"{what} must be a string, got {type(value).__name__}")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MalformedKeyError(f"{what} {value!r} is not valid utf8: {e}") from e
    if MIN_UNICODE_RUNE in value:
        raise MalformedKeyError(
            f"{what} {value!r} contains the reserved delimiter U+0000"
        )
    if MAX_UNICODE_RUNE in value:
        raise MalformedKeyError(f"{what} {value!r} contains the reserved U+10FFFF")


def create_partial_key(object_type: str, attributes: Sequence[str]) -> str:
    """Encode an object type and a (possibly empty) attribute prefix."""
    _validate_component(object_type, "object type")
    parts = [COMPOSITE_KEY_NAMESPACE, object_type, DELIMITER]
    for attribute in attributes:
        _validate_component(attribute, "attribute")
        parts.append(attribute)
        parts.append(DELIMITER)
    return "".join(parts)


def create_composite_key(object_type: str, attributes: Sequence[str]) -> str:
    """Encode a full composite key. At least one attribute is required."""
    if not attributes:
        raise MalformedKeyError(
            f"composite key for object type {object_type!r} needs at least one attribute"
        )
    return create_partial_key(object_type, attributes)


def is_composite_key(key: str) -> bool:
    return key.startswith(COMPOSITE_KEY_NAMESPACE)


def split_composite_key(key: str) -> tuple[str, list[str]]:
    """Decode a composite key into ``(object_type, attributes)``.

    Raises:
        MalformedKeyError: if ``key`` was not produced by create_partial_key
    """
    if not isinstance(key, str) or not is_composite_key(key):
        raise MalformedKeyError(f"{key!r} is not a composite key")
    if len(key) < 2 or not key.endswith(DELIMITER):
        raise MalformedKeyError(f"{key!r} is not terminated by the delimiter")
    components = key[1:-1].split(DELIMITER)
    object_type, attributes = components[0], components[1:]
    if MAX_UNICODE_RUNE in key:
        raise MalformedKeyError(f"{key!r} contains the reserved U+10FFFF")
    return object_type, attributes


def partial_key_range(object_type: str, attributes: Sequence[str]) -> tuple[str, str]:
    """Half-open ``[start, end)`` bounds covering every key under a partial key."""
    start = create_partial_key(object_type, attributes)
    return start, start + MAX_UNICODE_RUNE


def validate_simple_key(key: str) -> None:
    """Reject keys that collide with the composite key namespace or embed NUL."""
    if not isinstance(key, str):
        raise MalformedKeyError(f"key must be a string, got {type(key).__name__}")
    if is_composite_key(key):
        raise MalformedKeyError(
            f"key {key!r} starts with U+0000, reserved for composite keys"
        )
    if MIN_UNICODE_RUNE in key:
        raise MalformedKeyError(f"key {key!r} contains U+0000")
    try:
        key.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MalformedKeyError(f"key {key!r} is not valid utf8: {e}") from e


def simple_key_range(start_key: str, end_key: str) -> tuple[str, str]:
    """Normalize range bounds for a scan over simple keys.

    An empty start key means the first simple key, an empty end key means
    no upper bound. Both bounds must otherwise be valid simple keys.
    """
    if start_key:
        validate_simple_key(start_key)
    else:
        start_key = FIRST_SIMPLE_KEY
    if end_key:
        validate_simple_key(end_key)
    else:
        end_key = MAX_UNICODE_RUNE
    return start_key, end_key
