"""FBK assistant domain models - re-exports all public model classes.

    - chat.py      - sessions, messages, citations, feedback, stream events
    - document.py  - ingestible documents and their lifecycle status
    - rag.py       - vector-store chunks, retrieval results, ingestion stats
"""

from __future__ import annotations

from src.models.chat import (
    ChatEvent,
    ChatMessage,
    ChatRole,
    ChatSession,
    Feedback,
    FeedbackRating,
    Source,
)
from src.models.document import Document, DocumentStatus
from src.models.rag import CorpusStats, DocumentChunk, IngestionResult, RetrievedChunk

__all__ = [
    "ChatEvent",
    "ChatMessage",
    "ChatRole",
    "ChatSession",
    "CorpusStats",
    "Document",
    "DocumentChunk",
    "DocumentStatus",
    "Feedback",
    "FeedbackRating",
    "IngestionResult",
    "RetrievedChunk",
    "Source",
]
