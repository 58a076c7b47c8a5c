"""Tests for the composite key codec.

Tests:
- create/split round trip
- attribute prefixes encode to string (and utf8 byte) prefixes
- reserved characters are rejected, never silently encoded
- range bounds for partial keys and simple key scans
"""

import pytest
from hypothesis import given, settings, strategies as st

from ledgerkv.exceptions import MalformedKeyError
from ledgerkv.keys import (
    FIRST_SIMPLE_KEY,
    MAX_UNICODE_RUNE,
    CompositeKey,
    create_composite_key,
    create_partial_key,
    is_composite_key,
    partial_key_range,
    simple_key_range,
    split_composite_key,
    validate_simple_key,
)

# Printable-ish text without the reserved code points or lone surrogates.
COMPONENT = st.text(
    alphabet=st.characters(
        exclude_categories=("Cs",), exclude_characters="\x00\U0010ffff"
    ),
    max_size=12,
)
ATTRS = st.lists(COMPONENT, min_size=1, max_size=6)


def test_composite_key_layout():
    key = create_composite_key("color~name", ["blue", "marble1"])
    assert key == "\x00color~name\x00blue\x00marble1\x00"
    assert is_composite_key(key)


def test_composite_key_descriptor_encode():
    descriptor = CompositeKey("T", ["a", "b"])
    assert descriptor.encode() == create_composite_key("T", ["a", "b"])


def test_split_composite_key():
    object_type, attributes = split_composite_key("\x00T\x00U\x00Q2\x00AnswerKey2\x00")
    assert object_type == "T"
    assert attributes == ["U", "Q2", "AnswerKey2"]


def test_split_partial_key_without_attributes():
    assert split_composite_key(create_partial_key("T", [])) == ("T", [])


def test_empty_attributes_rejected():
    with pytest.raises(MalformedKeyError, match="at least one attribute"):
        create_composite_key("T", [])


@pytest.mark.parametrize(
    "object_type,attributes",
    [
        ("T\x00", ["a"]),
        ("T", ["a\x00b"]),
        ("T", ["ok", "\U0010ffff"]),
        ("T", ["\ud800"]),
    ],
)
def test_reserved_characters_rejected(object_type, attributes):
    with pytest.raises(MalformedKeyError):
        create_composite_key(object_type, attributes)


@pytest.mark.parametrize(
    "key",
    ["plain", "", "\x00", "\x00T", "\x00T\x00a", "\x00T\x00\U0010ffff\x00"],
)
def test_split_rejects_foreign_keys(key):
    with pytest.raises(MalformedKeyError):
        split_composite_key(key)


def test_partial_key_range_bounds():
    start, end = partial_key_range("T", ["U", "Q2"])
    assert start == "\x00T\x00U\x00Q2\x00"
    assert end == start + MAX_UNICODE_RUNE
    inside = create_composite_key("T", ["U", "Q2", "AnswerKey2"])
    sibling = create_composite_key("T", ["U", "Q20", "AnswerKey20"])
    assert start <= inside < end
    # "Q20" shares the text prefix "Q2" but not the encoded prefix
    assert not (start <= sibling < end)


def test_simple_key_range_defaults():
    assert simple_key_range("", "") == (FIRST_SIMPLE_KEY, MAX_UNICODE_RUNE)
    assert simple_key_range("a", "b") == ("a", "b")


def test_simple_key_range_rejects_composite_bounds():
    with pytest.raises(MalformedKeyError, match="reserved for composite keys"):
        simple_key_range(create_composite_key("T", ["a"]), "")


def test_validate_simple_key():
    validate_simple_key("key01")
    with pytest.raises(MalformedKeyError):
        validate_simple_key("a\x00b")


@settings(max_examples=200)
@given(object_type=COMPONENT, attributes=ATTRS)
def test_round_trip(object_type, attributes):
    key = create_composite_key(object_type, attributes)
    assert split_composite_key(key) == (object_type, attributes)


@settings(max_examples=200)
@given(object_type=COMPONENT, attributes=ATTRS, extra=ATTRS)
def test_prefix_property(object_type, attributes, extra):
    short = create_composite_key(object_type, attributes)
    longer = create_composite_key(object_type, attributes + extra)
    assert longer.startswith(short)
    assert longer.encode("utf-8").startswith(short.encode("utf-8"))
    start, end = partial_key_range(object_type, attributes)
    assert start <= longer < end
    assert start.encode("utf-8") <= longer.encode("utf-8") < end.encode("utf-8")


@given(
    object_type=COMPONENT,
    attributes=ATTRS,
    position=st.integers(min_value=0, max_value=5),
    poison=st.sampled_from(["\x00", "\U0010ffff"]),
)
def test_reserved_characters_never_encoded(object_type, attributes, position, poison):
    position = min(position, len(attributes) - 1)
    attributes = list(attributes)
    attributes[position] = attributes[position] + poison
    with pytest.raises(MalformedKeyError):
        create_composite_key(object_type, attributes)


@given(object_type=COMPONENT, a=ATTRS, b=ATTRS)
def test_distinct_attribute_lists_never_collide(object_type, a, b):
    if a != b:
        assert create_composite_key(object_type, a) != create_composite_key(object_type, b)
