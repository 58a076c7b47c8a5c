"""codec.py - JSON result payloads and bulk input decoding.

Result payloads are a compact JSON array followed by exactly one newline::

    [{"Key":"k1","Value":"v1"},{"Key":"k2","Value":"v2"}]
    [["U","Q2","AnswerKey2"]]

Bulk inputs use the same field names: ``[{"Key": ..., "Value": ...}]`` for
bulkPut and ``[{"ObjectType": ..., "Attributes": [...]}]`` for
bulkCreateCompositeKey.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from .exceptions import MalformedPayloadError
from .keys import CompositeKey
from .state import KV
from .utils import to_text


def _to_jsonable(item: KV | Sequence[str]) -> Any:
    if isinstance(item, KV):
        return {"Key": item.key, "Value": to_text(item.value)}
    return list(item)


def encode_results(items: Sequence[KV] | Sequence[Sequence[str]]) -> bytes:
    body = json.dumps(
        [_to_jsonable(item) for item in items],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return (body + "\n").encode("utf-8")


def _load_list(payload: str | bytes, what: str) -> list:
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedPayloadError(f"Error unmarshalling the {what}: {e}") from e
    if not isinstance(data, list):
        raise MalformedPayloadError(
            f"Error unmarshalling the {what}: expected a JSON array, got {type(data).__name__}"
        )
    return data


def _string_field(obj: dict, name: str, what: str, index: int) -> str:
    # A missing or null field decodes as "", failing only that item on write.
    value = obj.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedPayloadError(
            f"Error unmarshalling the {what}: item {index} field {name!r} must be a string"
        )
    return value


def decode_bulk_records(payload: str | bytes) -> list[KV]:
    what = "kv list"
    records = []
    for index, obj in enumerate(_load_list(payload, what)):
        if not isinstance(obj, dict):
            raise MalformedPayloadError(
                f"Error unmarshalling the {what}: item {index} is not an object"
            )
        key = _string_field(obj, "Key", what, index)
        value = _string_field(obj, "Value", what, index)
        try:
            records.append(KV(key, value.encode("utf-8")))
        except UnicodeEncodeError as e:
            raise MalformedPayloadError(
                f"Error unmarshalling the {what}: item {index} value is not valid utf8: {e}"
            ) from e
    return records


def decode_attribute_list(payload: str | bytes) -> list[str]:
    what = "list of keys"
    values = _load_list(payload, what)
    if not all(isinstance(v, str) for v in values):
        raise MalformedPayloadError(
            f"Error unmarshalling the {what}: every element must be a string"
        )
    return values


def decode_bulk_composite_keys(payload: str | bytes) -> list[CompositeKey]:
    what = "compositekey list"
    descriptors = []
    for index, obj in enumerate(_load_list(payload, what)):
        if not isinstance(obj, dict):
            raise MalformedPayloadError(
                f"Error unmarshalling the {what}: item {index} is not an object"
            )
        object_type = _string_field(obj, "ObjectType", what, index)
        attributes = obj.get("Attributes")
        if attributes is None:
            attributes = []
        if not isinstance(attributes, list) or not all(
            isinstance(a, str) for a in attributes
        ):
            raise MalformedPayloadError(
                f"Error unmarshalling the {what}: item {index} 'Attributes' must be a list of strings"
            )
        descriptors.append(CompositeKey(object_type, attributes))
    return descriptors
