"""Document records tracked by the ingestion pipeline.

A Document is one uploaded source artifact (PDF, markdown or plain text).
Its lifecycle within a single ingestion attempt is monotonic::

    pending / existing --> ingesting --> ingested
                                    \\-> error

Re-ingesting an ``ingested`` or ``error`` document starts a new attempt.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):
    """Ingestion lifecycle state of a Document."""

    PENDING = "pending"
    INGESTING = "ingesting"
    INGESTED = "ingested"
    ERROR = "error"


class Document(BaseModel):
    """One ingested (or ingestible) source artifact."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable document identifier (uuid4).")
    title: str = Field(description="Human-readable title shown in citations.")
    source_url: str | None = Field(default=None, description="Public URL of the original.")
    mime_type: str = Field(default="text/plain")
    file_path: str | None = Field(
        default=None,
        description="Upload path relative to the upload directory, e.g. '<id>/guide.pdf'.",
    )
    status: DocumentStatus = Field(default=DocumentStatus.PENDING)
    error_msg: str | None = Field(default=None, description="Last ingestion failure message.")
    ingested_at: datetime | None = None
    created_at: datetime
