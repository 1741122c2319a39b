"""Map core exceptions onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from equilens.api.schemas import ErrorResponse
from equilens.errors import (
    ConfigurationError,
    EquiLensError,
    MalformedResultError,
    ProcessingTimeoutError,
    UnreadableMediaError,
    UploadCancelledError,
)

logger = logging.getLogger(__name__)


def status_for(exc: EquiLensError) -> int:
    """HTTP status for a core error; remote failures default to 502."""
    if isinstance(exc, ProcessingTimeoutError):
        return 504
    if isinstance(exc, (MalformedResultError, UnreadableMediaError)):
        return 422
    if isinstance(exc, UploadCancelledError):
        return 409
    if isinstance(exc, ConfigurationError):
        return 500
    return 502


async def equilens_error_handler(request: Request, exc: EquiLensError) -> JSONResponse:
    status = status_for(exc)
    logger.warning(
        "%s %s -> %d %s: %s",
        request.method,
        request.url.path,
        status,
        type(exc).__name__,
        exc,
    )
    body = ErrorResponse(error=exc.message, type=type(exc).__name__, details=exc.details)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EquiLensError, equilens_error_handler)
