"""Abstract base class for vector-store providers.

Stores document chunks with their embeddings and answers nearest-neighbour
queries.  Embeddings are always computed outside the store and passed in;
the store never embeds text itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import CorpusStats, DocumentChunk, RetrievedChunk


# Concrete implementations: ChromaDBProvider
# Located in: src/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for chunk storage and similarity search."""

    @abstractmethod
    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Insert *chunks* with their positionally matching *embeddings*.

        Returns
        -------
        int
            Number of chunks written.

        Raises
        ------
        src.utils.errors.StoreError
            On write failure or an embedding dimension mismatch.
        """

    @abstractmethod
    async def query(
        self,
        embedding: list[float],
        top_k: int = 5,
        min_similarity: float = 0.0,
    ) -> list[RetrievedChunk]:
        """Return up to *top_k* chunks with similarity >= *min_similarity*.

        Results are ordered by descending similarity.  Fewer than *top_k*
        (or none) may be returned.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk owned by *document_id*; return how many were removed."""

    @abstractmethod
    async def count_by_document(self, document_id: str) -> int:
        """Return the number of chunks currently stored for *document_id*."""

    @abstractmethod
    async def get_stats(self) -> CorpusStats:
        """Return aggregate corpus statistics."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier used in logs and error messages."""
