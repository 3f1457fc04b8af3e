"""Shared pytest fixtures for the FBK assistant test suite."""

from __future__ import annotations

import hashlib
import struct
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.assistant_profile import DEFAULT_PROFILE, AssistantProfile
from src.interfaces.chat_store import IChatStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.models.chat import ChatMessage, ChatRole
from src.models.rag import DocumentChunk, RetrievedChunk
from src.utils.errors import EmbeddingError

# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------

_HANDBOOK_PARAGRAPHS = [
    "FBK is a community organisation that supports early-career founders "
    "through mentorship, workshops and a peer network. Membership is open "
    "to anyone building a project in the region, regardless of stage.",
    "Members are paired with a mentor during their first month. Mentors are "
    "volunteers from the FBK community who meet with their mentee at least "
    "twice a month, either in person or online.",
    "The Founders Program runs twice a year, in spring and autumn. Each "
    "cohort lasts twelve weeks and ends with a public demo evening where "
    "participants present their progress to the community.",
    "Workshops cover fundraising, product design, legal basics and "
    "hiring. Recordings of past workshops are available to members in the "
    "resource library on the member portal.",
    "FBK is funded by member dues, sponsorships and individual donations. "
    "Every donation goes directly to program costs, scholarships and the "
    "upkeep of the shared workspace.",
    "The shared workspace is open to members on weekdays. Desks are first "
    "come, first served, and meeting rooms can be booked through the portal "
    "up to two weeks in advance.",
    "Scholarships cover the full membership fee for founders who could not "
    "otherwise afford it. Applications are reviewed by a volunteer panel "
    "and decisions are sent within three weeks.",
    "Volunteers help run events, review applications and maintain the "
    "resource library. Anyone interested in volunteering can write to the "
    "team and will be invited to the next orientation session.",
]


@pytest.fixture
def sample_document_text() -> str:
    """Return a roughly 3,000-character multi-paragraph handbook text."""
    text = "\n\n".join(_HANDBOOK_PARAGRAPHS * 2)
    return text[:3000]


@pytest.fixture
def profile() -> AssistantProfile:
    return DEFAULT_PROFILE


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "assistant.db"


# ---------------------------------------------------------------------------
# Embedding fixtures
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 32


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit vector by hashing *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    values = [v / 2**32 for v in struct.unpack(f"<{dim}I", raw[: dim * 4])]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self, fail_on_call: int | None = None) -> None:
        self.calls: list[list[str]] = []
        self._fail_on_call = fail_on_call

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if len(self.calls) == self._fail_on_call:
            raise EmbeddingError(message="rate limited", provider_name="mock-embedding")
        return [hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return hash_to_vector(text)

    def get_dimension(self) -> int:
        return EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


# ---------------------------------------------------------------------------
# Completion fixtures
# ---------------------------------------------------------------------------


def token_stream(tokens: list[str], fail_after: int | None = None):  # noqa: ANN201
    """Return a ``stream_chat`` side effect yielding *tokens*.

    With *fail_after*, raises ``RuntimeError`` after that many tokens.
    The returned function records whether each stream was closed.
    """
    closed: list[bool] = []

    def _side_effect(messages, temperature=0.3, max_tokens=1024):  # noqa: ANN001, ANN202
        async def _gen() -> AsyncIterator[str]:
            try:
                for i, token in enumerate(tokens):
                    if fail_after is not None and i >= fail_after:
                        raise RuntimeError("upstream stream broke")
                    yield token
            finally:
                closed.append(True)

        return _gen()

    _side_effect.closed = closed  # type: ignore[attr-defined]
    return _side_effect


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Return a mock ILLMProvider streaming a short grounded answer."""
    mock = MagicMock(spec=ILLMProvider)
    mock.stream_chat = MagicMock(
        side_effect=token_stream(["The Founders", " Program runs", " twice a year."])
    )
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    return mock


# ---------------------------------------------------------------------------
# Chat store fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_chat_store() -> IChatStore:
    """Return a mock IChatStore whose add_message echoes its argument."""
    mock = MagicMock(spec=IChatStore)
    mock.create_session = AsyncMock()
    mock.ensure_session = AsyncMock()
    mock.touch_session = AsyncMock()
    mock.get_session = AsyncMock(return_value=None)
    mock.add_message = AsyncMock(side_effect=lambda message: message)
    mock.get_recent_messages = AsyncMock(return_value=[])
    return mock


# ---------------------------------------------------------------------------
# Model builders
# ---------------------------------------------------------------------------


def make_retrieved(
    text: str = "The Founders Program runs twice a year.",
    similarity: float = 0.8,
    document_id: str = "doc-1",
    chunk_index: int = 0,
    title: str = "Member Handbook",
    source_url: str | None = "https://fbk.org/handbook",
) -> RetrievedChunk:
    return RetrievedChunk(
        chunk=DocumentChunk(
            chunk_id=DocumentChunk.make_id(document_id, chunk_index),
            document_id=document_id,
            chunk_index=chunk_index,
            text=text,
            title=title,
            source_url=source_url,
        ),
        similarity=similarity,
    )


def make_message(
    role: ChatRole,
    content: str,
    session_id: str = "sess-1",
    message_id: str | None = None,
) -> ChatMessage:
    return ChatMessage(
        id=message_id or str(uuid.uuid4()),
        session_id=session_id,
        role=role,
        content=content,
        created_at=datetime.now(tz=timezone.utc),  # noqa: UP017
    )
