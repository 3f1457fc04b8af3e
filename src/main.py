"""FBK assistant FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml``, configures
structured logging, and serves the chat, feedback, admin and health API.

Every client (completion, embedding, vector store, SQLite stores) is built
once in :func:`_build_all` and handed to the services that need it; nothing
below the application layer constructs its own connections.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import APP_VERSION, admin_router
from src.api.routes import router as api_router
from src.config.assistant_profile import AssistantProfile
from src.config.loader import load_config
from src.config.settings import Settings
from src.providers.chat.sqlite_chat_store import SQLiteChatStore
from src.providers.document.sqlite_document_store import SQLiteDocumentStore
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.feedback.sqlite_feedback_provider import SQLiteFeedbackProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.answer_streamer import AnswerStreamer
from src.services.chat_service import ChatService
from src.services.faq_matcher import FaqMatcher
from src.services.ingestion import Embedder, IngestionService, TextChunker, TextExtractor
from src.services.retriever import Retriever
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings.config_path)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(
    app_settings: Settings, app_config: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.

    Raises
    ------
    ConfigurationError
        If a required setting (API key, model names) is missing.
    """
    missing = app_settings.missing_required()
    if missing:
        raise ConfigurationError(
            message=f"Missing required configuration: {', '.join(missing)}",
        )

    profile = AssistantProfile.from_config(app_config or {})

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=5.0))
    Path(app_settings.database_path).parent.mkdir(parents=True, exist_ok=True)

    # -- Model backends --
    llm = OpenAILLMProvider(settings=app_settings, http_client=http_client)
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings, http_client=http_client)

    # -- Storage --
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        embedding_dimension=embedding_provider.get_dimension(),
    )
    document_store = SQLiteDocumentStore(db_path=app_settings.database_path)
    chat_store = SQLiteChatStore(db_path=app_settings.database_path)
    feedback_provider = SQLiteFeedbackProvider(db_path=app_settings.database_path)

    # -- Ingestion --
    embedder = Embedder(embedding_provider, batch_size=app_settings.embed_batch_size)
    ingestion_service = IngestionService(
        extractor=TextExtractor(),
        chunker=TextChunker(
            chunk_size=app_settings.chunk_size,
            overlap=app_settings.chunk_overlap,
        ),
        embedder=embedder,
        vector_store=vector_store,
        document_store=document_store,
        upload_dir=app_settings.upload_dir,
    )

    # -- Answering --
    retriever = Retriever(
        embedder=embedder,
        vector_store=vector_store,
        top_k=app_settings.retrieval_top_k,
        min_similarity=app_settings.retrieval_min_similarity,
    )
    streamer = AnswerStreamer(
        llm=llm,
        profile=profile,
        temperature=app_settings.chat_temperature,
        max_tokens=app_settings.chat_max_tokens,
        history_turns=app_settings.history_turns,
    )
    faq = FaqMatcher(profile.faq_rules)
    chat_service = ChatService(
        chat_store=chat_store,
        retriever=retriever,
        streamer=streamer,
        faq=faq,
        history_limit=app_settings.history_fetch_limit,
        retrieval_k=app_settings.retrieval_top_k,
    )

    provider_registry: dict[str, bool] = {
        "llm": llm.is_available(),
        "embedding": embedding_provider.is_available(),
    }

    return {
        "settings": app_settings,
        "profile": profile,
        "http_client": http_client,
        "llm": llm,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "document_store": document_store,
        "chat_store": chat_store,
        "feedback_provider": feedback_provider,
        "ingestion_service": ingestion_service,
        "retriever": retriever,
        "answer_streamer": streamer,
        "chat_service": chat_service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    # Create SQLite tables if needed.
    for name in ("document_store", "chat_store", "feedback_provider"):
        await components[name].initialize()

    _logger.info(
        "app_startup",
        version=APP_VERSION,
        environment=settings.app_env,
        llm=components["llm"].get_provider_name(),
        embedding=components["embedding_provider"].get_provider_name(),
        faq_rules=len(components["profile"].faq_rules),
    )

    yield

    # -- Shutdown: close shared httpx client --
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="FBK Assistant API",
        version=APP_VERSION,
        description=(
            "Site assistant for FBK: answers visitor questions from the "
            "organisation's own documents, streamed with citations."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.cors_allowed_origins)

    # -- API routes --
    application.include_router(api_router)
    application.include_router(admin_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
