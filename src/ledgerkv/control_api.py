import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from pydantic import BaseModel

from .auth import token_required
from .chaincode import LedgerKV, Operation
from .config import API_VERSION, Settings

logger = logging.getLogger(__name__)

chaincode: LedgerKV | None = None

# Operations that change state need a bearer token over HTTP.
MUTATING = {
    Operation.PUT.value,
    Operation.DELETE.value,
    Operation.PUT_ALL.value,
    Operation.DELETE_ALL.value,
    Operation.BULK_PUT.value,
    Operation.BULK_CREATE_COMPOSITE_KEY.value,
}

app = FastAPI(title="ledgerkv", docs_url="/docs", redoc_url=None)


class Invocation(BaseModel):
    function: str
    args: list[str] = []


def set_chaincode(instance: LedgerKV | None) -> None:
    global chaincode
    chaincode = instance


@app.on_event("startup")
async def startup_event():
    """Open the HDF5 store named by LEDGERKV_HDF5_PATH unless one is already set."""
    global chaincode
    if chaincode is not None:
        return
    from .storage import Storage

    settings = Settings.from_env()
    logger.info(f"[Control Plane] Using HDF5 path: {settings.hdf5_path}")
    chaincode = LedgerKV(Storage(settings.hdf5_path), strict_get=settings.strict_get)


@app.on_event("shutdown")
async def shutdown_event():
    global chaincode
    if chaincode is not None:
        chaincode.store.close()
        logger.info("[Control Plane] Store closed")
    chaincode = None


def with_version(payload):
    if isinstance(payload, dict):
        payload = dict(payload)
        payload["version"] = API_VERSION
        return payload
    return payload


@app.get("/health", response_class=PlainTextResponse)
async def health():
    return "ok"


@app.get("/ready", response_class=PlainTextResponse)
async def ready():
    if chaincode is None:
        return PlainTextResponse("store not initialized", status_code=503)
    return "ready"


@app.get("/metrics")
async def metrics():
    return PlainTextResponse(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


@app.get("/functions")
async def functions():
    return with_version({"functions": Operation.names()})


@app.post("/invoke")
async def invoke(invocation: Invocation, request: Request):
    if invocation.function in MUTATING:
        token_required(request)
    if chaincode is None:
        return PlainTextResponse("store not initialized", status_code=503)
    response = await asyncio.to_thread(chaincode.invoke, invocation.function, invocation.args)
    payload = response.payload.decode("utf-8", errors="replace") if response.payload else ""
    return JSONResponse(
        with_version({
            "status": int(response.status),
            "payload": payload,
            "message": response.message,
        }),
        status_code=int(response.status),
    )
