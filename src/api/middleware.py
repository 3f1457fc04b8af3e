"""API middleware: CORS for the widget, request logging, error mapping.

Starlette middleware is a stack (last added, first executed).  main.py
adds ErrorHandlingMiddleware first and RequestLoggingMiddleware second, so
the request logger sees the final status code after error mapping and the
request id is already bound when an error is logged.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import (
    AssistantError,
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingError,
    ExtractionError,
    LLMError,
)
from src.utils.logging import bind_request_id, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Most specific first; anything else is a 500.
_STATUS_BY_ERROR: tuple[tuple[type[AssistantError], int], ...] = (
    (DocumentNotFoundError, 404),
    (ExtractionError, 422),
    (ConfigurationError, 503),
    (EmbeddingError, 502),
    (LLMError, 502),
)


def status_for_error(exc: AssistantError) -> int:
    """HTTP status for an application error that escaped a route."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    The chat widget is embedded on third-party pages, so the default is
    ``["*"]``.  Credentials are only allowed with an explicit origin list;
    browsers reject a wildcard origin combined with credentials.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-Token", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id, echo it back, and log one line per request.

    For streamed chat responses the duration covers time to first byte,
    not the whole stream.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn an escaped ``AssistantError`` into an ``ErrorResponse`` body.

    The provider name stays in the server log.  Other exceptions fall
    through to FastAPI's default 500 handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except AssistantError as exc:
            status_code = status_for_error(exc)
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=request.url.path,
                status=status_code,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status_code, content=body.model_dump())
