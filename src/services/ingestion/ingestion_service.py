"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **extract -> chunk -> replace -> embed -> store**.

:class:`IngestionService` coordinates its collaborators (text extractor,
chunker, embedder, vector store, document store) without any of them
knowing about each other.  Every entry point ends in :meth:`ingest`:

    1. mark the Document ``ingesting``
    2. TextExtractor  -- bytes + MIME type to plain text
    3. TextChunker    -- ~800-character overlapping windows
    4. delete the document's previous chunks from the vector store
    5. per batch of 20: Embedder -> IVectorStoreProvider.add_chunks
    6. mark the Document ``ingested`` with a timestamp

A failure anywhere in 2-5 marks the Document ``error`` with the message and
re-raises, so a Document is never falsely ``ingested``.  A failure after
step 4 also removes the batches already stored.

All dependencies are injected via the constructor.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from pathlib import Path, PurePath
from typing import TYPE_CHECKING

import structlog

from src.models.document import Document, DocumentStatus
from src.models.rag import DocumentChunk, IngestionResult
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.embedder import Embedder
from src.services.ingestion.text_extractor import TextExtractor, mime_type_for_filename
from src.utils.errors import DocumentNotFoundError, StoreError

if TYPE_CHECKING:
    from src.interfaces.document_store import IDocumentStore
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class IngestionService:
    """Orchestrates ingestion and the admin-side document lifecycle.

    Parameters
    ----------
    extractor:
        Converts upload bytes to plain text.
    chunker:
        Splits text into overlapping windows.
    embedder:
        Batched embedding; its batch size is also the insert batch size.
    vector_store:
        Chunk storage.
    document_store:
        Document records and status.
    upload_dir:
        Root directory for stored uploads, laid out as ``<doc id>/<filename>``.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        chunker: TextChunker,
        embedder: Embedder,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStore,
        upload_dir: str | Path = "data/uploads",
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._embedder = embedder
        self._vector_store = vector_store
        self._documents = document_store
        self._upload_dir = Path(upload_dir)

    # ------------------------------------------------------------------
    # Core pipeline
    # ------------------------------------------------------------------

    async def ingest(
        self,
        document_id: str,
        title: str,
        source_url: str | None,
        data: bytes,
        mime_type: str,
    ) -> IngestionResult:
        """Run the full pipeline for one document, replacing its chunk set.

        Raises
        ------
        ExtractionError, EmbeddingError, StoreError
            Whatever failed; the Document is left in ``error`` state.  Once
            the old chunks have been deleted, any batches already stored are
            removed again, so an ``error`` document has no chunks.
        """
        start_time = time.monotonic()
        await self._documents.update_status(document_id, DocumentStatus.INGESTING)

        chunks_cleared = False
        try:
            text = self._extractor.extract(data, mime_type)
            pieces = self._chunker.chunk(text)
            if not pieces:
                logger.warning("ingestion_no_chunks", document_id=document_id, characters=len(text))

            removed = await self._vector_store.delete_by_document(document_id)
            chunks_cleared = True

            batch_size = self._embedder.batch_size
            for batch_start in range(0, len(pieces), batch_size):
                batch = pieces[batch_start : batch_start + batch_size]
                embeddings = await self._embedder.embed_batch(batch)
                chunks = [
                    DocumentChunk(
                        chunk_id=DocumentChunk.make_id(document_id, batch_start + j),
                        document_id=document_id,
                        chunk_index=batch_start + j,
                        text=piece,
                        title=title,
                        source_url=source_url,
                    )
                    for j, piece in enumerate(batch)
                ]
                await self._vector_store.add_chunks(chunks, embeddings)
        except Exception as exc:
            logger.error(
                "ingestion_failed",
                document_id=document_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            if chunks_cleared:
                await self._discard_partial_chunks(document_id)
            await self._documents.update_status(
                document_id, DocumentStatus.ERROR, error_msg=str(exc)
            )
            raise

        await self._documents.update_status(
            document_id, DocumentStatus.INGESTED, ingested_at=_utcnow()
        )

        elapsed = time.monotonic() - start_time
        logger.info(
            "ingestion_complete",
            document_id=document_id,
            title=title,
            chunks=len(pieces),
            replaced_chunks=removed,
            characters=len(text),
            elapsed_s=round(elapsed, 2),
        )
        return IngestionResult(
            document_id=document_id,
            title=title,
            chunks_created=len(pieces),
            total_characters=len(text),
            ingestion_time=elapsed,
        )

    async def _discard_partial_chunks(self, document_id: str) -> None:
        """Remove batches stored before a failure; an ``error`` document has no chunks."""
        try:
            removed = await self._vector_store.delete_by_document(document_id)
        except StoreError as cleanup_exc:
            logger.error(
                "ingestion_cleanup_failed",
                document_id=document_id,
                error=str(cleanup_exc),
            )
            return
        logger.info("ingestion_partial_chunks_removed", document_id=document_id, chunks=removed)

    # ------------------------------------------------------------------
    # Document lifecycle (admin API + CLI)
    # ------------------------------------------------------------------

    async def register_upload(
        self,
        title: str,
        source_url: str | None,
        filename: str,
        data: bytes,
    ) -> Document:
        """Store uploaded bytes and create a ``pending`` Document for them."""
        document_id = str(uuid.uuid4())
        safe_name = PurePath(filename).name or "upload.txt"
        relative_path = f"{document_id}/{safe_name}"

        target = self._upload_dir / relative_path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StoreError(
                message=f"Failed to store upload {safe_name}: {exc}",
                provider_name="filesystem",
            ) from exc

        document = Document(
            id=document_id,
            title=title,
            source_url=source_url or None,
            mime_type=mime_type_for_filename(safe_name),
            file_path=relative_path,
            status=DocumentStatus.PENDING,
            created_at=_utcnow(),
        )
        await self._documents.create(document)
        logger.info(
            "upload_registered",
            document_id=document_id,
            filename=safe_name,
            mime_type=document.mime_type,
            size=len(data),
        )
        return document

    async def ingest_document(self, document_id: str) -> IngestionResult:
        """Re-read a stored upload and ingest it.

        Raises
        ------
        DocumentNotFoundError
            If *document_id* is unknown.
        StoreError
            If the Document has no stored file or it cannot be read.
        """
        document = await self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(message=f"Document not found: {document_id}")
        if not document.file_path:
            raise StoreError(message=f"Document {document_id} has no stored file")

        try:
            data = (self._upload_dir / document.file_path).read_bytes()
        except OSError as exc:
            raise StoreError(
                message=f"Stored file for {document_id} is unreadable: {exc}",
                provider_name="filesystem",
            ) from exc

        return await self.ingest(
            document_id=document.id,
            title=document.title,
            source_url=document.source_url,
            data=data,
            mime_type=document.mime_type,
        )

    async def ingest_file(
        self,
        path: str | Path,
        title: str,
        source_url: str | None = None,
    ) -> IngestionResult:
        """Ingest a local file, reusing the Document with the same title if one exists."""
        file_path = Path(path)
        data = file_path.read_bytes()

        existing = await self._documents.find_by_title(title)
        if existing is not None:
            logger.info("ingest_file_reusing_document", document_id=existing.id, title=title)
            return await self.ingest(
                document_id=existing.id,
                title=title,
                source_url=source_url or existing.source_url,
                data=data,
                mime_type=mime_type_for_filename(file_path.name),
            )

        document = await self.register_upload(title, source_url, file_path.name, data)
        return await self.ingest(
            document_id=document.id,
            title=document.title,
            source_url=document.source_url,
            data=data,
            mime_type=document.mime_type,
        )

    async def delete_document(self, document_id: str) -> bool:
        """Remove a Document, its chunks, and its stored upload.

        Returns ``False`` if the Document does not exist.
        """
        document = await self._documents.get(document_id)
        if document is None:
            return False

        if document.file_path:
            stored = self._upload_dir / document.file_path
            try:
                stored.unlink(missing_ok=True)
                if stored.parent != self._upload_dir and not any(stored.parent.iterdir()):
                    stored.parent.rmdir()
            except OSError as exc:
                # The record and chunks still go; an orphaned file is harmless.
                logger.warning("upload_cleanup_failed", document_id=document_id, error=str(exc))

        removed = await self._vector_store.delete_by_document(document_id)
        await self._documents.delete(document_id)
        logger.info("document_deleted", document_id=document_id, chunks_removed=removed)
        return True

    async def get_document(self, document_id: str) -> Document | None:
        return await self._documents.get(document_id)

    async def list_documents(self) -> list[Document]:
        return await self._documents.list_documents()
