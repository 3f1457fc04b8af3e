"""Batched text-to-vector conversion shared by ingestion and retrieval.

Both the ingestion pipeline and the retriever embed through the same
:class:`Embedder`, and therefore the same provider and model.  Query vectors
and stored vectors always come from one embedding space.
"""

from __future__ import annotations

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)


class Embedder:
    """Embeds texts in fixed-size sequential batches.

    Newlines are replaced with spaces before embedding.  Batches run one
    after another to stay inside upstream request-size and rate limits, and
    output order always matches input order.  No retries: any upstream
    failure surfaces as :class:`EmbeddingError`.

    Parameters
    ----------
    provider:
        The embedding backend.
    batch_size:
        Texts per upstream request (default 20).
    """

    def __init__(self, provider: IEmbeddingProvider, batch_size: int = 20) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._provider = provider
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order."""
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = [t.replace("\n", " ") for t in texts[start : start + self._batch_size]]
            try:
                batch_vectors = await self._provider.embed(batch)
            except EmbeddingError:
                raise
            except Exception as exc:
                raise EmbeddingError(
                    message=f"Embedding batch starting at {start} failed: {exc}",
                    provider_name=self._provider.get_provider_name(),
                ) from exc

            if len(batch_vectors) != len(batch):
                raise EmbeddingError(
                    message=(
                        f"Embedding backend returned {len(batch_vectors)} vectors "
                        f"for {len(batch)} inputs"
                    ),
                    provider_name=self._provider.get_provider_name(),
                )
            vectors.extend(batch_vectors)

        logger.debug(
            "embed_batch_complete",
            texts=len(texts),
            batches=(len(texts) + self._batch_size - 1) // self._batch_size,
            provider=self._provider.get_provider_name(),
        )
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string through the same path as documents."""
        vectors = await self.embed_batch([text])
        return vectors[0]
