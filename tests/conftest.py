import json

import pytest

from ledgerkv.chaincode import LedgerKV
from ledgerkv.memory import MemoryStore


@pytest.fixture
def store():
    with MemoryStore() as store:
        yield store


@pytest.fixture
def chaincode(store):
    cc = LedgerKV(store)
    assert cc.init().ok, "Init is not successful"
    return cc


@pytest.fixture
def hdf5_store(tmp_path):
    """HDF5-backed store on a temporary file, closed after the test."""
    from ledgerkv.storage import Storage

    storage = Storage(tmp_path / "state.h5")
    try:
        yield storage
    finally:
        storage.close()


@pytest.fixture
def answer_index(chaincode):
    """Three index entries under one object type plus the value for AnswerKey2."""
    object_type = "UniqueVersionID~QuestionID~AnswerKey"
    descriptors = [
        {"ObjectType": object_type, "Attributes": ["U", f"Q{i}", f"AnswerKey{i}"]}
        for i in (1, 2, 3)
    ]
    result = chaincode.invoke("bulkCreateCompositeKey", [json.dumps(descriptors)])
    assert result.ok, result.message
    chaincode.store.put_state("AnswerKey2", b"Answer2Value")
    return object_type
