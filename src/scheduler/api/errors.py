"""Error reporter -- the single place failures become HTTP responses.

Every error path ends here: SchedulerError subclasses raised by handlers and
the store, FastAPI request validation errors, Starlette routing errors and
anything unexpected. Each is rendered exactly once as::

    {"error": {"kind": "<code>", "message": "<text>", "details": {...}}}

and logged at the severity of its kind. Tracebacks are logged, never
returned.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.scheduler.core.errors import (
    BackendError,
    NotFound,
    SchedulerError,
    ValidationFailed,
)

logger = structlog.get_logger(__name__)


def error_body(kind: str, message: str, details: Any = None) -> dict[str, Any]:
    """Build the JSON error envelope."""
    error: dict[str, Any] = {"kind": kind, "message": message}
    if details is not None:
        error["details"] = details
    return {"error": error}


def _report(
    request: Request,
    *,
    status_code: int,
    kind: str,
    message: str,
    details: Any = None,
    log_level: str = "info",
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    log_method = getattr(logger, log_level)
    log_method(
        "request_failed",
        kind=kind,
        status_code=status_code,
        method=request.method,
        path=request.url.path,
        message=message,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_body(kind, message, details),
        headers=headers,
    )


async def scheduler_error_handler(request: Request, exc: SchedulerError) -> JSONResponse:
    return _report(
        request,
        status_code=exc.status_code,
        kind=exc.kind,
        message=exc.message,
        details=exc.details,
        log_level=exc.log_level,
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed JSON, schema violations and unknown fields -> 400."""
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        message = "Request body is not valid JSON"
    else:
        message = "Request validation failed"
    details = {
        "errors": [
            {
                "loc": [str(part) for part in e.get("loc", ())],
                "msg": e.get("msg", ""),
                "type": e.get("type", ""),
            }
            for e in errors
        ]
    }
    return _report(
        request,
        status_code=ValidationFailed.status_code,
        kind=ValidationFailed.kind,
        message=message,
        details=details,
        log_level=ValidationFailed.log_level,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Routing errors (unknown path, wrong method) raised by Starlette."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        kind, log_level = NotFound.kind, NotFound.log_level
    elif exc.status_code < 500:
        kind, log_level = ValidationFailed.kind, ValidationFailed.log_level
    else:
        kind, log_level = BackendError.kind, BackendError.log_level
    return _report(
        request,
        status_code=exc.status_code,
        kind=kind,
        message=str(exc.detail),
        log_level=log_level,
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: anything not raised as a SchedulerError is a 500."""
    logger.error(
        "request_unhandled_error",
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )
    return _report(
        request,
        status_code=BackendError.status_code,
        kind=BackendError.kind,
        message="Internal server error",
        log_level=BackendError.log_level,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the error reporter on ``app``."""
    app.add_exception_handler(SchedulerError, scheduler_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
