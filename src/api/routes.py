"""FastAPI API routes for the site assistant.

Provides the public chat and feedback endpoints used by the embeddable
widget, the token-guarded admin endpoints for managing the knowledge base,
and a health check.  Service dependencies are resolved from ``app.state``
via FastAPI's ``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/chat                          POST    Chat turn, streamed as SSE
# /api/v1/feedback                      POST    Thumbs up/down on an answer
# /api/v1/health                        GET     Health check + corpus size
# /api/v1/admin/documents               GET     List knowledge-base documents
# /api/v1/admin/documents?id=...        DELETE  Remove a document + its chunks
# /api/v1/admin/upload                  POST    Store a file as a pending document
# /api/v1/admin/ingest/{doc_id}         POST    (Re-)ingest a stored document
#
# Admin routes share a router-level dependency on require_admin_token.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import uuid
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from src.api.auth import require_admin_token
from src.api.schemas import (
    ChatRequest,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    FeedbackRequest,
    HealthResponse,
    IngestResponse,
    SuccessResponse,
    UploadResponse,
)
from src.api.sse import SSE_HEADERS, encode_events
from src.models.chat import Feedback, FeedbackRating
from src.utils.errors import AssistantError, StoreError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

APP_VERSION = "0.1.0"

# All routes in this file are prefixed with /api/v1.
router = APIRouter(prefix="/api/v1")
admin_router = APIRouter(prefix="/api/v1/admin", dependencies=[Depends(require_admin_token)])

_MAX_UPLOAD_SIZE = 20 * 1024 * 1024  # 20 MB
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers - resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_chat_service(request: Request) -> Any:
    """Return the chat service from application state, or ``None``."""
    return getattr(request.app.state, "chat_service", None)


def _get_feedback_provider(request: Request) -> Any:
    """Return the feedback provider from application state, or ``None``."""
    return getattr(request.app.state, "feedback_provider", None)


def _get_ingestion_service(request: Request) -> Any:
    """Return the ingestion service from application state, or ``None``."""
    return getattr(request.app.state, "ingestion_service", None)


ChatServiceDep = Annotated[Any, Depends(_get_chat_service)]
FeedbackDep = Annotated[Any, Depends(_get_feedback_provider)]
IngestionDep = Annotated[Any, Depends(_get_ingestion_service)]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_class=StreamingResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Send a chat message; the answer streams back as server-sent events",
)
async def chat(body: ChatRequest, chat_service: ChatServiceDep) -> StreamingResponse:
    """Start a chat turn and stream ``token`` / ``done`` / ``error`` events."""
    if chat_service is None:
        raise HTTPException(status_code=503, detail="Chat service not available")

    message = (body.message or "").strip()
    if not message:
        raise HTTPException(status_code=400, detail="message is required")

    turn = await chat_service.start_turn(message, body.session_id)
    return StreamingResponse(
        encode_events(chat_service.stream_turn(turn)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


@router.post(
    "/feedback",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Rate an assistant answer thumbs up or down",
)
async def submit_feedback(body: FeedbackRequest, feedback: FeedbackDep) -> SuccessResponse:
    if feedback is None:
        raise HTTPException(status_code=503, detail="Feedback service not available")
    if not body.session_id or not body.message_id or not body.rating:
        raise HTTPException(
            status_code=400, detail="sessionId, messageId, and rating are required"
        )
    try:
        rating = FeedbackRating(body.rating)
    except ValueError:
        raise HTTPException(status_code=400, detail='rating must be "up" or "down"') from None

    try:
        await feedback.submit_feedback(
            Feedback(
                id=str(uuid.uuid4()),
                session_id=body.session_id,
                message_id=body.message_id,
                rating=rating,
                category=body.category,
                comment=body.comment,
            )
        )
    except StoreError as exc:
        _logger.error("feedback_save_failed", session_id=body.session_id, error=exc.message)
        raise HTTPException(status_code=500, detail="Failed to save feedback") from exc

    return SuccessResponse()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and corpus size."""
    providers: dict[str, bool] = dict(getattr(request.app.state, "provider_registry", {}) or {})

    corpus_chunks = 0
    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        try:
            stats = await vector_store.get_stats()
            corpus_chunks = stats.total_chunks
            providers["vector_store"] = True
        except Exception as exc:
            _logger.warning("health_corpus_stats_failed", error=str(exc))
            providers["vector_store"] = False

    critical = ("llm", "embedding", "vector_store")
    if all(providers.get(name, False) for name in critical):
        status = "healthy" if corpus_chunks > 0 else "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        version=APP_VERSION,
        corpus_chunks=corpus_chunks,
        providers=providers,
    )


# ---------------------------------------------------------------------------
# Admin - knowledge-base management
# ---------------------------------------------------------------------------


def _require_ingestion(ingestion: Any) -> Any:
    if ingestion is None:
        raise HTTPException(status_code=503, detail="Ingestion service not available")
    return ingestion


@admin_router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List knowledge-base documents, newest first",
)
async def list_documents(ingestion: IngestionDep) -> DocumentListResponse:
    documents = await _require_ingestion(ingestion).list_documents()
    return DocumentListResponse(documents=[DocumentResponse.from_document(d) for d in documents])


@admin_router.delete(
    "/documents",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Delete a document, its chunks and its stored file",
)
async def delete_document(
    ingestion: IngestionDep,
    id: Annotated[str | None, Query()] = None,  # noqa: A002
) -> SuccessResponse:
    if not id:
        raise HTTPException(status_code=400, detail="id is required")
    deleted = await _require_ingestion(ingestion).delete_document(id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Document not found")
    return SuccessResponse()


@admin_router.post(
    "/upload",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}},
    summary="Upload a PDF, markdown or text file as a pending document",
)
async def upload_document(
    ingestion: IngestionDep,
    file: Annotated[UploadFile | None, File()] = None,
    title: Annotated[str | None, Form()] = None,
    source_url: Annotated[str | None, Form(alias="sourceUrl")] = None,
) -> UploadResponse:
    """Store the file and register it; ingestion is a separate call."""
    service = _require_ingestion(ingestion)
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    title = (title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="title is required")

    # Read in chunks so oversized uploads are rejected early.
    parts: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > _MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {_MAX_UPLOAD_SIZE // (1024 * 1024)} MB",
            )
        parts.append(chunk)

    document = await service.register_upload(
        title=title,
        source_url=(source_url or "").strip() or None,
        filename=file.filename or "upload.txt",
        data=b"".join(parts),
    )
    return UploadResponse(document_id=document.id)


@admin_router.post(
    "/ingest/{doc_id}",
    response_model=IngestResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Run the ingestion pipeline on a stored document",
)
async def ingest_document(doc_id: str, ingestion: IngestionDep) -> IngestResponse:
    service = _require_ingestion(ingestion)
    document = await service.get_document(doc_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    if not document.file_path:
        raise HTTPException(status_code=400, detail="Document has no associated file")

    try:
        result = await service.ingest_document(doc_id)
    except AssistantError as exc:
        # The failure is already recorded on the document.
        raise HTTPException(status_code=500, detail=exc.message) from exc

    return IngestResponse(document_id=doc_id, chunks_created=result.chunks_created)
