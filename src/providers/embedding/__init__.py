"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
These vectors are stored in ChromaDB and used for similarity search.

    OpenAIEmbeddingProvider - OpenAI ``text-embedding-3-small`` (1536 dims) or
    any OpenAI-compatible embeddings endpoint via ``OPENAI_BASE_URL``.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
