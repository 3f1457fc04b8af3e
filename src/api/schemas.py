"""Pydantic request/response schemas for the assistant API.

Defines the public contract for the chat, feedback, admin and health
endpoints.  The embeddable widget speaks camelCase (``sessionId``,
``messageId``, ``documentId``), so those fields carry aliases; FastAPI
serializes responses by alias.

Required request fields are declared optional and checked in the route
handlers, so a missing field is a 400 with a readable message instead of
a 422 validation dump.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.document import Document, DocumentStatus


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """A visitor message, optionally continuing an existing session."""

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = Field(default=None, max_length=4000)
    session_id: str | None = Field(default=None, alias="sessionId")


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


class FeedbackRequest(BaseModel):
    """Thumbs up/down on one assistant message."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    message_id: str | None = Field(default=None, alias="messageId")
    rating: str | None = Field(default=None, description='"up" or "down"')
    category: str | None = Field(default=None, max_length=100)
    comment: str | None = Field(default=None, max_length=2000)


class SuccessResponse(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class DocumentResponse(BaseModel):
    """One knowledge-base document as listed in the admin panel."""

    id: str
    title: str
    source_url: str | None = None
    mime_type: str
    status: DocumentStatus
    error_msg: str | None = None
    ingested_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_document(cls, doc: Document) -> DocumentResponse:
        return cls(
            id=doc.id,
            title=doc.title,
            source_url=doc.source_url,
            mime_type=doc.mime_type,
            status=doc.status,
            error_msg=doc.error_msg,
            ingested_at=doc.ingested_at,
            created_at=doc.created_at,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse] = Field(default_factory=list)


class UploadResponse(BaseModel):
    """Returned after an upload is stored and registered as ``pending``."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    document_id: str = Field(alias="documentId")


class IngestResponse(BaseModel):
    """Returned after a stored document was (re-)ingested."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    document_id: str = Field(alias="documentId")
    chunks_created: int = Field(default=0, alias="chunksCreated")


# ---------------------------------------------------------------------------
# Health / errors
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    corpus_chunks: int = 0
    providers: dict[str, bool] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
