"""Assistant API layer - routes, schemas, SSE framing, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import admin_router, router
from src.api.schemas import (
    ChatRequest,
    DocumentListResponse,
    ErrorResponse,
    FeedbackRequest,
    HealthResponse,
    IngestResponse,
    SuccessResponse,
    UploadResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "admin_router",
    "router",
    "ChatRequest",
    "DocumentListResponse",
    "ErrorResponse",
    "FeedbackRequest",
    "HealthResponse",
    "IngestResponse",
    "SuccessResponse",
    "UploadResponse",
]
