"""
BFTX HTTP API

JSON endpoints over a ``LifecycleEngine``. The engine is built by the caller
and handed to ``create_app``; the app holds no other state.

    app = create_app(engine)
    uvicorn.run(app, host="127.0.0.1", port=12345)
"""

import logging
from typing import Any, Dict

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import (
    RATCHET_ERRORS,
    BFTXError,
    ConcurrentModificationError,
    DuplicateRecordError,
    EncodingError,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from .lifecycle import LifecycleEngine
from .schema import normalize_document

logger = logging.getLogger(__name__)

# Checked in order; the first matching type wins.
ERROR_STATUS_MAP = (
    ((ValidationError, EncodingError), 422),
    ((NotFoundError,), 404),
    (RATCHET_ERRORS + (DuplicateRecordError, ConcurrentModificationError), 409),
    ((NetworkError,), 502),
)


def status_for(error: BFTXError) -> int:
    for kinds, status in ERROR_STATUS_MAP:
        if isinstance(error, kinds):
            return status
    return 500


def _engine(request: Request) -> LifecycleEngine:
    return request.app.state.engine


def create_app(engine: LifecycleEngine) -> FastAPI:
    """Create the FastAPI application bound to ``engine``."""
    app = FastAPI(title="Blockfreight BF_TX API")
    app.state.engine = engine

    @app.exception_handler(BFTXError)
    async def _bftx_error(request: Request, exc: BFTXError):
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        body = exc.to_dict()
        if isinstance(exc, ValidationError) and exc.errors:
            body["errors"] = exc.errors
        return JSONResponse(status_code=status, content=body)

    @app.post("/bftx", status_code=201)
    def construct(request: Request, document: Dict[str, Any] = Body(...)):
        bftx_id = _engine(request).construct(normalize_document(document))
        return {"id": bftx_id}

    @app.post("/bftx/validate")
    def validate(request: Request, document: Dict[str, Any] = Body(...)):
        properties = _engine(request).validate(normalize_document(document))
        return {"valid": True, "properties": properties.to_content()}

    @app.post("/bftx/verify")
    def verify(request: Request, document: Dict[str, Any] = Body(...)):
        return {"id": _engine(request).verify(normalize_document(document))}

    @app.get("/bftx/total")
    def total(request: Request):
        return {"total": _engine(request).total()}

    @app.get("/bftx/{bftx_id}")
    def get_record(bftx_id: str, request: Request):
        return _engine(request).get(bftx_id).to_dict()

    @app.get("/bftx/{bftx_id}/state")
    def state(bftx_id: str, request: Request):
        return _engine(request).state(bftx_id).to_dict()

    @app.post("/bftx/{bftx_id}/sign")
    def sign(bftx_id: str, request: Request):
        signed = _engine(request).sign(bftx_id)
        return {"id": signed.id, "key_id": signed.key_id, "signature": signed.signature}

    @app.post("/bftx/{bftx_id}/broadcast")
    def broadcast(bftx_id: str, request: Request):
        receipt = _engine(request).broadcast(bftx_id)
        return {"id": bftx_id, "receipt": receipt.to_dict()}

    @app.post("/bftx/{bftx_id}/append", status_code=201)
    def append(bftx_id: str, request: Request, document: Dict[str, Any] = Body(...)):
        new_id = _engine(request).append(normalize_document(document), bftx_id)
        return {"id": new_id, "amends": bftx_id}

    @app.get("/bftx/{bftx_id}/chain")
    def query(bftx_id: str, request: Request):
        return {"id": bftx_id, "content": _engine(request).query(bftx_id)}

    @app.get("/chain/info")
    def chain_info(request: Request):
        return _engine(request).chain_info()

    return app
