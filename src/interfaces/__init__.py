"""Public interface definitions for all external service providers.

Every external API or store is reached through the abstract base classes
in this package.  Concrete adapters live in ``src/providers/`` and are
constructed and injected in ``src/main.py``; unit tests inject mocks.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementation (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider               →  OpenAILLMProvider
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    IVectorStoreProvider       →  ChromaDBProvider
    IDocumentStore             →  SQLiteDocumentStore
    IChatStore                 →  SQLiteChatStore
    IFeedbackProvider          →  SQLiteFeedbackProvider
"""

from src.interfaces.chat_store import IChatStore
from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.feedback_provider import IFeedbackProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IChatStore",
    "IDocumentStore",
    "IEmbeddingProvider",
    "IFeedbackProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
