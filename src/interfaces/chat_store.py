"""Abstract base class for chat session and message persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.chat import ChatMessage, ChatSession


# Concrete implementations: SQLiteChatStore
# Located in: src/providers/chat/
class IChatStore(ABC):
    """Contract for chat session and message persistence."""

    @abstractmethod
    async def create_session(self, session_id: str) -> ChatSession:
        """Create a new session with ``created_at == last_seen_at == now``."""

    @abstractmethod
    async def ensure_session(self, session_id: str) -> None:
        """Create the session if it does not exist; leave it untouched otherwise."""

    @abstractmethod
    async def touch_session(self, session_id: str) -> None:
        """Update ``last_seen_at`` to now."""

    @abstractmethod
    async def get_session(self, session_id: str) -> ChatSession | None:
        """Return the session, or ``None``."""

    @abstractmethod
    async def add_message(self, message: ChatMessage) -> ChatMessage:
        """Persist *message* (including its sources) and return it."""

    @abstractmethod
    async def get_recent_messages(self, session_id: str, limit: int = 10) -> list[ChatMessage]:
        """Return the last *limit* messages of the session, oldest first."""
