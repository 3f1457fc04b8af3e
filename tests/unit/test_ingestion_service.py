"""Tests for IngestionService against a real ChromaDB collection and SQLite file."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import DocumentStatus
from src.providers.document.sqlite_document_store import SQLiteDocumentStore
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.embedder import Embedder
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor
from src.utils.errors import DocumentNotFoundError, EmbeddingError, ExtractionError, StoreError
from tests.conftest import EMBEDDING_DIM, MockEmbeddingProvider

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def vector_store(tmp_path: Path) -> ChromaDBProvider:
    return ChromaDBProvider(
        persist_directory=str(tmp_path / "chroma"),
        collection_name="test_ingestion",
        embedding_dimension=EMBEDDING_DIM,
    )


@pytest.fixture()
async def document_store(db_path: Path) -> SQLiteDocumentStore:
    store = SQLiteDocumentStore(db_path=db_path)
    await store.initialize()
    return store


@pytest.fixture()
def service(
    tmp_path: Path,
    vector_store: ChromaDBProvider,
    document_store: SQLiteDocumentStore,
    mock_embedding_provider: MockEmbeddingProvider,
) -> IngestionService:
    return IngestionService(
        extractor=TextExtractor(),
        chunker=TextChunker(chunk_size=800, overlap=150),
        embedder=Embedder(mock_embedding_provider, batch_size=20),
        vector_store=vector_store,
        document_store=document_store,
        upload_dir=tmp_path / "uploads",
    )


# Single-line text: every chunk is a verbatim slice of it.
_REVISED_TEXT = " ".join(
    f"Revised clause {n}: members renew their FBK membership each spring "
    "and confirm their contact details with the office."
    for n in range(1, 31)
)


def _service_with(
    tmp_path: Path,
    vector_store: IVectorStoreProvider,
    document_store: SQLiteDocumentStore,
    provider: MockEmbeddingProvider,
    batch_size: int,
) -> IngestionService:
    return IngestionService(
        extractor=TextExtractor(),
        chunker=TextChunker(chunk_size=800, overlap=150),
        embedder=Embedder(provider, batch_size=batch_size),
        vector_store=vector_store,
        document_store=document_store,
        upload_dir=tmp_path / "uploads",
    )


def _stored_chunks(vector_store: ChromaDBProvider, document_id: str) -> tuple[list[int], list[str]]:
    """Read a document's chunk ordinals and texts straight from the collection."""
    rows = vector_store._collection.get(
        where={"document_id": document_id}, include=["metadatas", "documents"]
    )
    return [int(m["chunk_index"]) for m in rows["metadatas"]], list(rows["documents"])


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestIngestPipeline:
    @pytest.mark.asyncio
    async def test_upload_then_ingest_marks_document_ingested(
        self,
        service: IngestionService,
        vector_store: ChromaDBProvider,
        document_store: SQLiteDocumentStore,
        sample_document_text: str,
    ) -> None:
        document = await service.register_upload(
            "Member Handbook", "https://fbk.org/handbook", "handbook.txt",
            sample_document_text.encode("utf-8"),
        )
        assert document.status == DocumentStatus.PENDING

        result = await service.ingest_document(document.id)

        assert 4 <= result.chunks_created <= 8
        assert result.total_characters == len(sample_document_text)
        assert await vector_store.count_by_document(document.id) == result.chunks_created

        stored = await document_store.get(document.id)
        assert stored.status == DocumentStatus.INGESTED
        assert stored.ingested_at is not None
        assert stored.error_msg is None

    @pytest.mark.asyncio
    async def test_reingest_replaces_previous_chunk_set(
        self,
        vector_store: ChromaDBProvider,
        document_store: SQLiteDocumentStore,
        service: IngestionService,
        tmp_path: Path,
        sample_document_text: str,
    ) -> None:
        document = await service.register_upload(
            "Member Handbook", None, "handbook.txt", sample_document_text.encode("utf-8")
        )
        first = await service.ingest_document(document.id)
        assert first.chunks_created > 1

        small_batches = _service_with(
            tmp_path, vector_store, document_store, MockEmbeddingProvider(), batch_size=2
        )
        result = await small_batches.ingest(
            document.id, "Member Handbook", None, _REVISED_TEXT.encode("utf-8"), "text/plain"
        )

        indices, texts = _stored_chunks(vector_store, document.id)
        assert result.chunks_created > 2
        assert sorted(indices) == list(range(result.chunks_created))
        assert all(text in _REVISED_TEXT for text in texts)

    @pytest.mark.asyncio
    async def test_embedding_failure_mid_run_leaves_no_chunks(
        self,
        vector_store: ChromaDBProvider,
        document_store: SQLiteDocumentStore,
        service: IngestionService,
        tmp_path: Path,
        sample_document_text: str,
    ) -> None:
        document = await service.register_upload(
            "Member Handbook", None, "handbook.txt", sample_document_text.encode("utf-8")
        )
        await service.ingest_document(document.id)

        failing = _service_with(
            tmp_path,
            vector_store,
            document_store,
            MockEmbeddingProvider(fail_on_call=2),
            batch_size=2,
        )
        with pytest.raises(EmbeddingError):
            await failing.ingest(
                document.id, "Member Handbook", None, _REVISED_TEXT.encode("utf-8"), "text/plain"
            )

        stored = await document_store.get(document.id)
        assert stored.status == DocumentStatus.ERROR
        assert "rate limited" in stored.error_msg
        assert await vector_store.count_by_document(document.id) == 0

    @pytest.mark.asyncio
    async def test_cleanup_failure_keeps_original_error(
        self,
        document_store: SQLiteDocumentStore,
        tmp_path: Path,
    ) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.delete_by_document = AsyncMock(
            side_effect=[0, StoreError(message="collection unavailable")]
        )
        store.add_chunks = AsyncMock()
        failing = _service_with(
            tmp_path, store, document_store, MockEmbeddingProvider(fail_on_call=2), batch_size=2
        )
        document = await failing.register_upload(
            "Revised", None, "revised.txt", _REVISED_TEXT.encode("utf-8")
        )

        with pytest.raises(EmbeddingError):
            await failing.ingest_document(document.id)

        assert store.delete_by_document.await_count == 2
        assert (await document_store.get(document.id)).status == DocumentStatus.ERROR

    @pytest.mark.asyncio
    async def test_batches_follow_embedder_batch_size(
        self,
        service: IngestionService,
        mock_embedding_provider: MockEmbeddingProvider,
    ) -> None:
        text = ("Lorem ipsum dolor sit amet, FBK consectetur. " * 800).encode("utf-8")
        document = await service.register_upload("Long Document", None, "long.txt", text)

        result = await service.ingest_document(document.id)

        sizes = [len(call) for call in mock_embedding_provider.calls]
        assert sum(sizes) == result.chunks_created
        assert all(size <= 20 for size in sizes)
        assert len(sizes) > 1

    @pytest.mark.asyncio
    async def test_extraction_failure_marks_error(
        self,
        service: IngestionService,
        document_store: SQLiteDocumentStore,
    ) -> None:
        document = await service.register_upload(
            "Broken", None, "broken.pdf", b"this is not a pdf at all"
        )

        with pytest.raises(ExtractionError):
            await service.ingest_document(document.id)

        stored = await document_store.get(document.id)
        assert stored.status == DocumentStatus.ERROR
        assert stored.error_msg
        assert stored.ingested_at is None

    @pytest.mark.asyncio
    async def test_text_too_short_ingests_zero_chunks(
        self, service: IngestionService, document_store: SQLiteDocumentStore
    ) -> None:
        document = await service.register_upload("Tiny", None, "tiny.txt", b"Hi.")

        result = await service.ingest_document(document.id)

        assert result.chunks_created == 0
        assert (await document_store.get(document.id)).status == DocumentStatus.INGESTED


# ---------------------------------------------------------------------------
# Document lifecycle
# ---------------------------------------------------------------------------


class TestDocumentLifecycle:
    @pytest.mark.asyncio
    async def test_register_upload_stores_file_under_document_id(
        self, service: IngestionService, tmp_path: Path
    ) -> None:
        document = await service.register_upload(
            "Guide", "https://fbk.org/guide", "../../etc/guide.md", b"# Guide"
        )

        assert document.file_path == f"{document.id}/guide.md"
        assert document.mime_type == "text/markdown"
        assert (tmp_path / "uploads" / document.id / "guide.md").read_bytes() == b"# Guide"

    @pytest.mark.asyncio
    async def test_ingest_unknown_document_raises(self, service: IngestionService) -> None:
        with pytest.raises(DocumentNotFoundError):
            await service.ingest_document("missing")

    @pytest.mark.asyncio
    async def test_ingest_document_with_missing_file_raises(
        self, service: IngestionService, tmp_path: Path
    ) -> None:
        document = await service.register_upload("Gone", None, "gone.txt", b"some text")
        (tmp_path / "uploads" / document.id / "gone.txt").unlink()

        with pytest.raises(StoreError):
            await service.ingest_document(document.id)

    @pytest.mark.asyncio
    async def test_ingest_file_reuses_document_with_same_title(
        self,
        service: IngestionService,
        tmp_path: Path,
        sample_document_text: str,
    ) -> None:
        source = tmp_path / "handbook.txt"
        source.write_text(sample_document_text, encoding="utf-8")

        first = await service.ingest_file(source, "Member Handbook")
        second = await service.ingest_file(source, "Member Handbook")

        assert first.document_id == second.document_id
        assert len(await service.list_documents()) == 1

    @pytest.mark.asyncio
    async def test_delete_document_removes_record_chunks_and_file(
        self,
        service: IngestionService,
        vector_store: ChromaDBProvider,
        tmp_path: Path,
        sample_document_text: str,
    ) -> None:
        document = await service.register_upload(
            "Member Handbook", None, "handbook.txt", sample_document_text.encode("utf-8")
        )
        await service.ingest_document(document.id)

        assert await service.delete_document(document.id) is True

        assert await service.get_document(document.id) is None
        assert await vector_store.count_by_document(document.id) == 0
        assert not (tmp_path / "uploads" / document.id).exists()

    @pytest.mark.asyncio
    async def test_delete_unknown_document_returns_false(self, service: IngestionService) -> None:
        assert await service.delete_document("missing") is False
