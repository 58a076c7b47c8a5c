"""
Async ZMQ server for ledgerkv invocations

A REP socket receives MessagePack requests::

    {"function": "put", "args": ["key1", "value1"]}

and answers each with a MessagePack response envelope::

    {"status": 200, "payload": b"...", "message": "", "version": "1.0"}

Invocations are served one at a time, in arrival order.

Requires: pyzmq[asyncio], msgpack, asyncio
"""

import asyncio
import logging

import msgpack
import zmq
import zmq.asyncio

from ledgerkv.chaincode import LedgerKV, Response
from ledgerkv.config import API_VERSION, Settings

logger = logging.getLogger(__name__)


def with_version(payload):
    if isinstance(payload, dict):
        payload = dict(payload)
        payload["version"] = API_VERSION
        return payload
    return payload


def error_response(msg):
    return with_version({"status": 500, "payload": None, "message": msg})


def encode_response(response: Response) -> dict:
    return with_version({
        "status": int(response.status),
        "payload": response.payload,
        "message": response.message,
    })


def parse_request(req) -> tuple[str, list[str]]:
    """Extract ``(function, args)`` from a decoded request, decoding byte strings."""
    if not isinstance(req, dict):
        raise ValueError("request must be a map")
    function = req.get("function")
    args = req.get("args", [])
    if isinstance(function, bytes):
        function = function.decode("utf-8")
    if not isinstance(function, str):
        raise ValueError("request 'function' must be a string")
    if not isinstance(args, (list, tuple)):
        raise ValueError("request 'args' must be a list")
    parsed = []
    for arg in args:
        if isinstance(arg, bytes):
            arg = arg.decode("utf-8")
        if not isinstance(arg, str):
            raise ValueError("every request argument must be a string")
        parsed.append(arg)
    return function, parsed


class AsyncZMQServer:
    def __init__(self, chaincode: LedgerKV, settings: Settings | None = None):
        settings = settings or Settings.from_env()
        self.chaincode = chaincode
        self.ctx = zmq.asyncio.Context.instance()
        self.running = False
        self.endpoint = settings.zmq_endpoint
        # Idle timeout for the REP socket in seconds.
        # If 0 (default), do not stop the server on inactivity.
        self.zmq_idle_timeout = settings.zmq_idle_timeout
        self.served = 0
        self._task: asyncio.Task | None = None

    async def handle(self, msg: bytes) -> bytes:
        """Decode one request, run it, and encode the reply."""
        try:
            req = msgpack.unpackb(msg, raw=False)
            function, args = parse_request(req)
        except Exception as ex:
            logger.error(f"[ZMQ] Malformed request: {ex}")
            resp = error_response(f"malformed request: {ex}")
        else:
            response = await asyncio.to_thread(self.chaincode.invoke, function, args)
            resp = encode_response(response)
        self.served += 1
        return msgpack.packb(resp, use_bin_type=True)

    async def invoke_worker(self):
        """Serve REQ/REP invocations until stopped or idle for too long."""
        rep_sock = self.ctx.socket(zmq.REP)
        rep_sock.bind(self.endpoint)
        logger.info(f"[ZMQ] Serving invocations on {self.endpoint}")
        try:
            while self.running:
                try:
                    if self.zmq_idle_timeout and self.zmq_idle_timeout > 0:
                        msg = await asyncio.wait_for(
                            rep_sock.recv(), timeout=self.zmq_idle_timeout
                        )
                    else:
                        msg = await rep_sock.recv()
                except asyncio.TimeoutError:
                    logger.info(
                        f"[ZMQ] No request received for {self.zmq_idle_timeout}s, stopping server."
                    )
                    self.running = False
                    break
                reply = await self.handle(msg)
                try:
                    await rep_sock.send(reply)
                except zmq.ZMQError as ex:
                    logger.error(f"[ZMQ] send error: {ex}")
        finally:
            rep_sock.close(linger=0)

    async def start(self):
        self.running = True
        self._task = asyncio.create_task(self.invoke_worker())
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def stop(self):
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None


async def request(endpoint: str, function: str, args: list[str], timeout: float = 5.0) -> dict:
    """Client helper: send one invocation to ``endpoint`` and return the decoded reply."""
    ctx = zmq.asyncio.Context.instance()
    sock = ctx.socket(zmq.REQ)
    sock.connect(endpoint)
    try:
        await sock.send(
            msgpack.packb({"function": function, "args": args}, use_bin_type=True)
        )
        reply = await asyncio.wait_for(sock.recv(), timeout=timeout)
        return msgpack.unpackb(reply, raw=False)
    finally:
        sock.close(linger=0)
