"""Document record stores (metadata and ingestion status of uploaded files)."""

from src.providers.document.sqlite_document_store import SQLiteDocumentStore

__all__ = ["SQLiteDocumentStore"]
