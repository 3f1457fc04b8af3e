"""Semantic retrieval over the ingested corpus.

Embeds the visitor's query through the same :class:`Embedder` the ingestion
pipeline uses, asks the vector store for the nearest chunks, and filters
them by a cosine-similarity threshold.  Retrieval is best-effort: any
failure is logged and yields an empty result, and the answer path falls
back to an unguided (no-context) answer.
"""

from __future__ import annotations

import time

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.chat import Source
from src.models.rag import RetrievedChunk
from src.services.ingestion.embedder import Embedder

logger = structlog.get_logger(logger_name=__name__)

_SNIPPET_LENGTH = 200


def chunks_to_sources(
    chunks: list[RetrievedChunk],
    fallback_title: str = "FBK Document",
    fallback_url: str = "https://fbk.org",
) -> list[Source]:
    """Turn retrieved chunks into citations, one per chunk, in order."""
    return [
        Source(
            title=r.chunk.title or fallback_title,
            url=r.chunk.source_url or fallback_url,
            snippet=r.chunk.text[:_SNIPPET_LENGTH],
        )
        for r in chunks
    ]


class Retriever:
    """Top-k similarity search with a minimum-similarity cut-off.

    Parameters
    ----------
    embedder:
        Shared embedder; query vectors must live in the same space as the
        stored chunk vectors.
    vector_store:
        The chunk store to search.
    top_k:
        Default number of chunks to return (default 5).
    min_similarity:
        Chunks with a cosine similarity below this are discarded
        (default 0.45).
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: IVectorStoreProvider,
        top_k: int = 5,
        min_similarity: float = 0.45,
    ) -> None:
        self._embedder = embedder
        self._vector_store = vector_store
        self._top_k = top_k
        self._min_similarity = min_similarity

    @property
    def min_similarity(self) -> float:
        return self._min_similarity

    async def retrieve(self, query: str, k: int | None = None) -> list[RetrievedChunk]:
        """Return at most *k* chunks at or above the threshold, most similar first.

        Never raises: embedding or store failures produce ``[]``.
        """
        k = self._top_k if k is None else k
        if k <= 0 or not query.strip():
            return []

        start_time = time.monotonic()
        try:
            embedding = await self._embedder.embed_query(query)
            results = await self._vector_store.query(
                embedding=embedding,
                top_k=k,
                min_similarity=self._min_similarity,
            )
        except Exception as exc:
            logger.warning(
                "retrieval_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return []

        # The store filters too; the threshold and k are enforced here as well.
        kept = [r for r in results if r.similarity >= self._min_similarity]
        kept.sort(key=lambda r: r.similarity, reverse=True)
        kept = kept[:k]

        logger.info(
            "retrieval_complete",
            candidates=len(results),
            returned=len(kept),
            top_similarity=round(kept[0].similarity, 3) if kept else None,
            elapsed_ms=round((time.monotonic() - start_time) * 1000),
        )
        return kept
