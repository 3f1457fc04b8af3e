"""Abstract base class for Document record persistence.

Holds Document metadata and lifecycle status.  Chunks live in the vector
store; uploaded bytes live on disk under the upload directory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.models.document import Document, DocumentStatus


# Concrete implementations: SQLiteDocumentStore
# Located in: src/providers/document/
class IDocumentStore(ABC):
    """Contract for Document record persistence.

    All operations are async to support network-backed stores.
    """

    @abstractmethod
    async def create(self, document: Document) -> Document:
        """Insert a new Document record and return it."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the Document with *document_id*, or ``None``."""

    @abstractmethod
    async def find_by_title(self, title: str) -> Document | None:
        """Return the most recently created Document with exactly *title*."""

    @abstractmethod
    async def list_documents(self) -> list[Document]:
        """Return every Document, newest first."""

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        *,
        error_msg: str | None = None,
        ingested_at: datetime | None = None,
    ) -> None:
        """Set the lifecycle status.

        ``error_msg`` and ``ingested_at`` are written as given, so moving to
        ``ingesting`` with the defaults clears a previous error.
        """

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete the Document record; return ``False`` if it did not exist."""
