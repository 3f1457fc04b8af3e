"""Chat session and message stores."""

from src.providers.chat.sqlite_chat_store import SQLiteChatStore

__all__ = ["SQLiteChatStore"]
