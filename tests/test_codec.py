import json

import pytest

from ledgerkv.codec import (
    decode_attribute_list,
    decode_bulk_composite_keys,
    decode_bulk_records,
    encode_results,
)
from ledgerkv.exceptions import MalformedPayloadError
from ledgerkv.keys import CompositeKey
from ledgerkv.state import KV


def test_encode_kv_results():
    payload = encode_results([KV("k1", b"v1"), KV("k2", b"")])
    assert payload == b'[{"Key":"k1","Value":"v1"},{"Key":"k2","Value":""}]\n'


def test_encode_attribute_lists():
    assert encode_results([["U", "Q2", "AnswerKey2"]]) == b'[["U","Q2","AnswerKey2"]]\n'


def test_encode_empty():
    assert encode_results([]) == b"[]\n"


def test_encode_non_ascii_and_invalid_utf8():
    payload = encode_results([KV("clé", "värde".encode()), KV("raw", b"\xff")])
    assert payload.endswith(b"\n") and payload.count(b"\n") == 1
    decoded = json.loads(payload)
    assert decoded[0] == {"Key": "clé", "Value": "värde"}
    assert decoded[1]["Value"] == "�"


def test_decode_bulk_records():
    payload = '[{"Key":"key1","Value":"value1"},{"Key":"key2","Value":"value2"}]'
    assert decode_bulk_records(payload) == [KV("key1", b"value1"), KV("key2", b"value2")]


def test_decode_bulk_records_accepts_bytes():
    assert decode_bulk_records(b'[{"Key":"a","Value":"b"}]') == [KV("a", b"b")]


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        '{"Key":"a","Value":"b"}',
        '["a"]',
        '[{"Key":1,"Value":"b"}]',
        '[{"Key":"a","Value":["b"]}]',
    ],
)
def test_decode_bulk_records_malformed(payload):
    with pytest.raises(MalformedPayloadError):
        decode_bulk_records(payload)


def test_decode_bulk_composite_keys():
    payload = json.dumps([
        {"ObjectType": "T", "Attributes": ["U", "Q1", "AnswerKey1"]},
        {"ObjectType": "T"},
    ])
    assert decode_bulk_composite_keys(payload) == [
        CompositeKey("T", ["U", "Q1", "AnswerKey1"]),
        CompositeKey("T", []),
    ]


@pytest.mark.parametrize(
    "payload",
    [
        "[",
        '[{"ObjectType":"T","Attributes":"U"}]',
        '[{"ObjectType":"T","Attributes":[1]}]',
        '[{"ObjectType":5,"Attributes":["a"]}]',
        '[{"ObjectType":"T","Attributes":{}}]',
        '[{"ObjectType":"T","Attributes":""}]',
        '[{"ObjectType":"T","Attributes":0}]',
    ],
)
def test_decode_bulk_composite_keys_malformed(payload):
    with pytest.raises(MalformedPayloadError):
        decode_bulk_composite_keys(payload)


def test_decode_attribute_list():
    assert decode_attribute_list('["U","Q2"]') == ["U", "Q2"]
    assert decode_attribute_list("[]") == []
    with pytest.raises(MalformedPayloadError, match="list of keys"):
        decode_attribute_list('["U", 2]')


def test_decode_null_fields_as_empty():
    assert decode_bulk_records('[{"Key": null, "Value": null}]') == [KV("", b"")]
    assert decode_bulk_composite_keys('[{"ObjectType": "T", "Attributes": null}]') == [
        CompositeKey("T", [])
    ]


def test_decode_bulk_records_unencodable_value():
    with pytest.raises(MalformedPayloadError, match="not valid utf8"):
        decode_bulk_records('[{"Key": "a", "Value": "\\ud800"}]')
