import json

import pytest

from ledgerkv.exceptions import StoreFault
from ledgerkv.query import SelectorQueryEngine, matches
from ledgerkv.state import KV


def _records():
    docs = [
        ("a1", {"docType": "answer", "score": 5, "owner": {"name": "alice"}}),
        ("a2", {"docType": "answer", "score": 2, "owner": {"name": "bob"}}),
        ("q1", {"docType": "question", "score": 9}),
    ]
    records = [KV(key, json.dumps(doc).encode()) for key, doc in docs]
    records.append(KV("raw", b"not json"))
    records.append(KV("list", b"[1, 2]"))
    return records


def _run(query):
    engine = SelectorQueryEngine()
    return [kv.key for kv in engine.execute(json.dumps(query), _records())]


def test_equality_selector():
    assert _run({"selector": {"docType": "answer"}}) == ["a1", "a2"]


def test_operators():
    assert _run({"selector": {"score": {"$gte": 5}}}) == ["a1", "q1"]
    assert _run({"selector": {"score": {"$lt": 5, "$gt": 1}}}) == ["a2"]
    assert _run({"selector": {"docType": {"$in": ["question"]}}}) == ["q1"]
    assert _run({"selector": {"docType": {"$ne": "answer"}}}) == ["q1"]
    assert _run({"selector": {"owner": {"$exists": False}}}) == ["q1"]


def test_nested_field_and_combinators():
    assert _run({"selector": {"owner.name": "bob"}}) == ["a2"]
    query = {"selector": {"$or": [{"owner.name": "alice"}, {"docType": "question"}]}}
    assert _run(query) == ["a1", "q1"]
    query = {"selector": {"$and": [{"docType": "answer"}, {"score": {"$gt": 3}}]}}
    assert _run(query) == ["a1"]


def test_limit():
    assert _run({"selector": {"docType": "answer"}, "limit": 1}) == ["a1"]


def test_type_mismatch_does_not_match():
    assert _run({"selector": {"score": {"$gt": "a"}}}) == []


def test_matches_missing_field():
    assert not matches({}, {"x": 1})
    assert matches({}, {"x": {"$nin": [1]}})


@pytest.mark.parametrize(
    "query",
    [
        "{bad",
        '{"docType": "answer"}',
        '{"selector": []}',
        '{"selector": {"score": {"$regex": "x"}}}',
        '{"selector": {"$not": {}}}',
        '{"selector": {"a": {"$in": 1}}}',
        '{"selector": {}, "limit": -1}',
    ],
)
def test_invalid_queries_fault(query):
    with pytest.raises(StoreFault):
        SelectorQueryEngine().execute(query, [])


def test_store_query_result_is_closable(store):
    store.put_state("d1", b'{"docID": "3"}')
    store.put_state("d2", b'{"docID": "4"}')
    with store.get_query_result('{"selector": {"docID": "3"}}') as it:
        assert [kv.key for kv in it] == ["d1"]
    assert it.closed
