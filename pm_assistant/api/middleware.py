"""API middleware: CORS, request logging and error handling.

Starlette middleware is a stack (last added runs first).  ``main.py`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware``, so the
request log sees the final status even when an application error was
turned into a JSON body.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from pm_assistant.api.schemas import ErrorResponse
from pm_assistant.utils.errors import (
    AbortedError,
    ConfigurationError,
    DocumentNotFoundError,
    IndexingConflictError,
    ModelError,
    ModelErrorKind,
    PMAssistantError,
)
from pm_assistant.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; defaults to ``["*"]`` for development."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


def _status_for(exc: PMAssistantError) -> int:
    if isinstance(exc, DocumentNotFoundError):
        return 404
    if isinstance(exc, IndexingConflictError):
        return 409
    if isinstance(exc, ConfigurationError):
        return 503
    if isinstance(exc, ModelError):
        return 429 if exc.kind is ModelErrorKind.RATE_LIMIT else 502
    if isinstance(exc, AbortedError):
        return 502
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn ``PMAssistantError`` subclasses into JSON ``ErrorResponse`` bodies.

    Details are logged server-side; model failures are reported to the
    client through their user-facing message only.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except PMAssistantError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            detail = exc.user_message if isinstance(exc, ModelError) else exc.message
            body = ErrorResponse(error=type(exc).__name__, detail=detail)
            return JSONResponse(status_code=_status_for(exc), content=body.model_dump())
