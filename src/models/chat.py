"""Chat session, message, citation and feedback models.

Also defines :class:`ChatEvent`, the typed event a chat turn emits.  The
API layer serializes events as server-sent-event frames; see
``src/api/sse.py``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class FeedbackRating(str, Enum):
    UP = "up"
    DOWN = "down"


class Source(BaseModel):
    """A citation shown under an assistant answer."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    snippet: str = ""


class ChatSession(BaseModel):
    """Groups the messages from one visitor."""

    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime
    last_seen_at: datetime


class ChatMessage(BaseModel):
    """One persisted turn.  Immutable once written."""

    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    role: ChatRole
    content: str
    sources: list[Source] = Field(
        default_factory=list,
        description="Empty for user messages and for unguided answers.",
    )
    created_at: datetime


class Feedback(BaseModel):
    """A thumbs up/down on one assistant message."""

    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    message_id: str
    rating: FeedbackRating
    category: str | None = None
    comment: str | None = None
    created_at: datetime | None = None


class ChatEvent(BaseModel):
    """One event of a streamed chat turn.

    ``token`` events carry one text fragment.  A turn ends with exactly one
    ``done`` (message id, session id, final sources) or one ``error``.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["token", "done", "error"]
    token: str | None = None
    message_id: str | None = None
    session_id: str | None = None
    sources: list[Source] | None = None
    error: str | None = None

    @classmethod
    def token_event(cls, token: str) -> ChatEvent:
        return cls(type="token", token=token)

    @classmethod
    def done_event(cls, message_id: str, session_id: str, sources: list[Source]) -> ChatEvent:
        return cls(type="done", message_id=message_id, session_id=session_id, sources=sources)

    @classmethod
    def error_event(cls, error: str) -> ChatEvent:
        return cls(type="error", error=error)
