"""Translate domain exceptions into HTTP responses.

Every error body uses the same envelope as successful responses:
``{"success": false, "message": ..., "error": <code>}`` plus ``errors`` for
validation failures.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dealroom.domain.errors import (
    ConcurrentModificationError,
    DuplicateActiveNegotiationError,
    ForbiddenError,
    InvalidActionError,
    NegotiationClosedError,
    NegotiationError,
    NegotiationValidationError,
    NotFoundError,
)

logger = structlog.get_logger()

# Checked in order; subclasses before their bases.
ERROR_STATUS: list[tuple[type[NegotiationError], int, str]] = [
    (NotFoundError, 404, "not_found"),
    (ForbiddenError, 403, "forbidden"),
    (DuplicateActiveNegotiationError, 409, "duplicate_negotiation"),
    (InvalidActionError, 400, "invalid_action"),
    (NegotiationValidationError, 422, "validation_error"),
    (NegotiationClosedError, 409, "negotiation_closed"),
    (ConcurrentModificationError, 409, "concurrent_modification"),
]


def classify(exc: NegotiationError) -> tuple[int, str]:
    """Return ``(status_code, error_code)`` for a domain exception."""
    for exc_type, code, name in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return code, name
    return 400, "negotiation_error"


def error_body(message: str, error: str, **extra: Any) -> dict[str, Any]:
    return {"success": False, "message": message, "error": error, **extra}


async def negotiation_error_handler(request: Request, exc: NegotiationError) -> JSONResponse:
    code, name = classify(exc)
    extra: dict[str, Any] = {}
    if isinstance(exc, NegotiationValidationError):
        extra["errors"] = jsonable_encoder(exc.errors)
    if isinstance(exc, DuplicateActiveNegotiationError):
        extra["negotiation_id"] = exc.existing_id
    logger.info(
        "request_rejected",
        path=request.url.path,
        status_code=code,
        error=name,
        detail=str(exc),
    )
    return JSONResponse(status_code=code, content=error_body(str(exc), name, **extra))


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    logger.info("request_validation_failed", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=422,
        content=error_body("Invalid request", "validation_error", errors=errors),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    name = "unauthorized" if exc.status_code == 401 else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), name),
        headers=exc.headers,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log, record in the audit trail when available, and hide details."""
    logger.error("unhandled_error", path=request.url.path, exc_info=exc)
    services: dict[str, Any] = getattr(request.app.state, "services", {})
    audit_logger = services.get("audit_logger")
    if audit_logger is not None:
        try:
            audit_logger.log_error(
                negotiation_id=request.path_params.get("negotiation_id"),
                actor_id=request.headers.get("X-User-Id"),
                error_message=str(exc),
                context=f"{request.method} {request.url.path}",
            )
        except Exception:
            logger.exception("audit_error_log_failed")
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "internal_error"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the domain, validation, and fallback handlers on *app*."""
    app.add_exception_handler(NegotiationError, negotiation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
