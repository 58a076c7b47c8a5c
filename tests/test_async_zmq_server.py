import asyncio
import json
import sys

if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

import msgpack
import pytest

from ledgerkv.async_zmq_server import AsyncZMQServer, parse_request, request
from ledgerkv.chaincode import LedgerKV
from ledgerkv.config import Settings


@pytest.fixture
def server(store):
    settings = Settings(zmq_endpoint="inproc://ledgerkv-test")
    return AsyncZMQServer(LedgerKV(store), settings)


@pytest.mark.asyncio
async def test_handle_round_trip(server, store):
    msg = msgpack.packb({"function": "put", "args": ["k1", "v1"]}, use_bin_type=True)
    reply = msgpack.unpackb(await server.handle(msg), raw=False)
    assert reply["status"] == 200
    assert reply["version"] == "1.0"
    assert store.get_state("k1") == b"v1"

    msg = msgpack.packb({"function": "get", "args": ["k1"]}, use_bin_type=True)
    reply = msgpack.unpackb(await server.handle(msg), raw=False)
    assert reply["payload"] == b"v1"
    assert server.served == 2


@pytest.mark.asyncio
async def test_handle_malformed_request(server):
    reply = msgpack.unpackb(await server.handle(b"\xc1"), raw=False)
    assert reply["status"] == 500
    assert "malformed request" in reply["message"]

    msg = msgpack.packb({"function": "put", "args": [1, 2]}, use_bin_type=True)
    reply = msgpack.unpackb(await server.handle(msg), raw=False)
    assert reply["status"] == 500


@pytest.mark.asyncio
async def test_handle_operation_error(server):
    msg = msgpack.packb({"function": "scan", "args": ["a"]}, use_bin_type=True)
    reply = msgpack.unpackb(await server.handle(msg), raw=False)
    assert reply["status"] == 500
    assert reply["payload"] is None
    assert "Incorrect number of arguments" in reply["message"]


def test_parse_request_decodes_bytes():
    assert parse_request({"function": b"get", "args": [b"k"]}) == ("get", ["k"])
    with pytest.raises(ValueError):
        parse_request(["get"])
    with pytest.raises(ValueError):
        parse_request({"function": "get", "args": "k"})


@pytest.mark.asyncio
async def test_serve_over_socket(server):
    server_task = asyncio.create_task(server.start())
    await asyncio.sleep(0.1)  # let the REP socket bind
    try:
        reply = await request(server.endpoint, "putAll", ["a", "1", "b", "2"])
        assert reply["status"] == 200
        reply = await request(server.endpoint, "scan", ["", ""])
        assert json.loads(reply["payload"]) == [
            {"Key": "a", "Value": "1"},
            {"Key": "b", "Value": "2"},
        ]
    finally:
        await server.stop()
        await server_task
    assert server.served == 2
