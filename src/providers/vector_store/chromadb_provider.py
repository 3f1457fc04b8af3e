"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local and
Python-native, no external service required.
"""

from __future__ import annotations

import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  A version mismatch
# between ChromaDB's bundled PostHog client and the installed one raises
# "capture() takes 1 positional argument but 3 were given" on every call.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import CorpusStats, DocumentChunk, RetrievedChunk
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Every write and query passes pre-computed embeddings, so ChromaDB's
    built-in embedding is never invoked.  Without this, ChromaDB downloads
    its default all-MiniLM-L6-v2 ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Embeddings are pre-computed; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        On-disk location of the ChromaDB database.
    collection_name:
        Collection holding every document chunk.
    embedding_dimension:
        Dimension produced by the configured embedding model.  When given,
        the stored vectors are checked against it at startup and on every
        write, so a model switch without re-ingestion fails loudly.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "fbk_documents",
        embedding_dimension: int | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._embedding_dimension = embedding_dimension
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by older ChromaDB versions reject a different
        # embedding function with ValueError; reopen without one in that case.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _stored_dimension(self) -> int | None:
        """Return the length of one stored vector, or ``None`` when empty."""
        if self._collection.count() == 0:
            return None
        sample = self._collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    def _validate_embedding_dimensions(self) -> None:
        """Verify the configured dimension matches the stored vectors.

        A mismatch means every query would produce garbage results.
        """
        if self._embedding_dimension is None:
            return
        try:
            stored_dim = self._stored_dimension()
        except Exception as exc:
            logger.warning("embedding_dimension_check_skipped", error=str(exc))
            return
        if stored_dim is None:
            return

        if stored_dim != self._embedding_dimension:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=self._embedding_dimension,
            )
            raise StoreError(
                message=(
                    f"Embedding dimension mismatch: corpus has {stored_dim}-dim vectors "
                    f"but the embedding model produces {self._embedding_dimension}-dim "
                    "vectors. Set EMBEDDING_MODEL to the model used to build the "
                    "corpus, or re-ingest every document."
                ),
                provider_name=self.get_provider_name(),
            )
        logger.info("embedding_dimension_validated", dimension=stored_dim)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Add pre-embedded chunks to the collection (upsert by chunk id)."""
        if len(chunks) != len(embeddings):
            raise StoreError(
                message=(
                    f"chunks and embeddings length mismatch: "
                    f"{len(chunks)} != {len(embeddings)}"
                ),
                provider_name=self.get_provider_name(),
            )
        if not chunks:
            return 0

        expected = self._embedding_dimension or len(embeddings[0])
        bad = [i for i, emb in enumerate(embeddings) if len(emb) != expected]
        if bad:
            raise StoreError(
                message=(
                    f"Embedding dimension mismatch at positions {bad[:5]}: "
                    f"expected {expected}"
                ),
                provider_name=self.get_provider_name(),
            )

        try:
            self._collection.upsert(
                ids=[c.chunk_id for c in chunks],
                embeddings=embeddings,
                documents=[c.text for c in chunks],
                metadatas=[self._chunk_to_metadata(c) for c in chunks],
            )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB add_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "chromadb_add_chunks",
            count=len(chunks),
            document_id=chunks[0].document_id,
        )
        return len(chunks)

    async def query(
        self,
        embedding: list[float],
        top_k: int = 5,
        min_similarity: float = 0.0,
    ) -> list[RetrievedChunk]:
        """Nearest-neighbour search, dropping results below *min_similarity*."""
        if top_k <= 0:
            return []
        try:
            available = self._collection.count()
            if available == 0:
                return []

            results = self._collection.query(
                query_embeddings=[embedding],
                n_results=min(top_k, available),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["documents"] or not results["documents"][0]:
            return []

        documents = results["documents"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(documents)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(documents)

        retrieved: list[RetrievedChunk] = []
        for chunk_id, doc_text, meta, distance in zip(
            results["ids"][0], documents, metadatas, distances, strict=True
        ):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            if similarity < min_similarity:
                continue
            retrieved.append(
                RetrievedChunk(
                    chunk=self._metadata_to_chunk(chunk_id, meta, doc_text),
                    similarity=similarity,
                )
            )

        retrieved.sort(key=lambda rc: rc.similarity, reverse=True)
        logger.debug(
            "chromadb_query",
            raw_results=len(documents),
            results_count=len(retrieved),
            top_score=retrieved[0].similarity if retrieved else 0.0,
        )
        return retrieved[:top_k]

    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks owned by *document_id*."""
        try:
            count = await self.count_by_document(document_id)
            if count > 0:
                self._collection.delete(where={"document_id": document_id})
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_document", document_id=document_id, deleted_count=count)
        return count

    async def count_by_document(self, document_id: str) -> int:
        try:
            existing = self._collection.get(
                where={"document_id": document_id},
                include=["metadatas"],
            )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB count_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(existing["ids"]) if existing["ids"] else 0

    async def get_stats(self) -> CorpusStats:
        """Return chunk totals, paging metadata to stay under SQLite's bind limit."""
        try:
            current_count = self._collection.count()
            by_document: dict[str, int] = {}
            for page_offset in range(0, current_count, _PAGE_SIZE):
                page = self._collection.get(
                    include=["metadatas"],
                    limit=_PAGE_SIZE,
                    offset=page_offset,
                )
                for meta in page["metadatas"] or []:
                    doc_id = str(meta.get("document_id", ""))
                    by_document[doc_id] = by_document.get(doc_id, 0) + 1
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return CorpusStats(
            total_chunks=current_count,
            total_documents=len(by_document),
            chunks_by_document=by_document,
        )

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Metadata mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, Any]:
        # ChromaDB metadata values cannot be None.
        return {
            "document_id": chunk.document_id,
            "chunk_index": chunk.chunk_index,
            "title": chunk.title,
            "source_url": chunk.source_url or "",
        }

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> DocumentChunk:
        return DocumentChunk(
            chunk_id=chunk_id,
            document_id=str(meta.get("document_id", "")),
            chunk_index=int(meta.get("chunk_index", 0)),
            text=text,
            title=str(meta.get("title", "")),
            source_url=str(meta.get("source_url") or "") or None,
        )
