"""
Map the error taxonomy onto HTTP responses.

Every error body has the same shape: {"success": false, "error": ..., "code": ...}
"""

from __future__ import annotations

import logging
from typing import List, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from escrowmail.core.errors import (
    ConfigurationError,
    CustodyError,
    EscrowMailError,
    InvalidStateError,
    MissingWalletError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: List[Tuple[Type[EscrowMailError], int]] = [
    (ValidationError, 400),
    (UnauthorizedError, 403),
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (MissingWalletError, 422),
    (CustodyError, 502),
    (ConfigurationError, 500),
]


def status_for(error: EscrowMailError) -> int:
    for cls, status in STATUS_BY_ERROR:
        if isinstance(error, cls):
            return status
    return 500


def error_body(message: str, code: str, **extra) -> dict:
    return {"success": False, "error": message, "code": code, **extra}


async def _escrowmail_error(request: Request, exc: EscrowMailError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    extra = {}
    if isinstance(exc, InvalidStateError) and exc.status:
        extra["status"] = exc.status
    return JSONResponse(status_code=status, content=error_body(exc.message, exc.code, **extra))


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return JSONResponse(status_code=400, content=error_body(f"Invalid request: {errors}", "VALIDATION_ERROR"))


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "UNAUTHENTICATED" if exc.status_code == 401 else f"HTTP_{exc.status_code}"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), code),
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EscrowMailError, _escrowmail_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
