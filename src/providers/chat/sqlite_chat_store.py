"""SQLite-backed chat session and message store.

Sessions and messages live in the shared application database next to the
documents table.  Message sources are stored as a JSON array on the
message row; they have no identity of their own.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.chat_store import IChatStore
from src.models.chat import ChatMessage, ChatRole, ChatSession, Source
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/assistant.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS chat_sessions (
    id           TEXT PRIMARY KEY,
    created_at   TEXT NOT NULL,
    last_seen_at TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS chat_messages (
    id          TEXT PRIMARY KEY,
    session_id  TEXT NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
    role        TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
    content     TEXT NOT NULL,
    sources     TEXT NOT NULL DEFAULT '[]',
    created_at  TEXT NOT NULL
);
""",
    "CREATE INDEX IF NOT EXISTS idx_messages_session ON chat_messages(session_id, created_at);",
]

_INSERT_SESSION_SQL = """\
INSERT INTO chat_sessions (id, created_at, last_seen_at) VALUES (?, ?, ?);
"""

_ENSURE_SESSION_SQL = """\
INSERT OR IGNORE INTO chat_sessions (id, created_at, last_seen_at) VALUES (?, ?, ?);
"""

_INSERT_MESSAGE_SQL = """\
INSERT INTO chat_messages (id, session_id, role, content, sources, created_at)
VALUES (?, ?, ?, ?, ?, ?);
"""

# Newest N, re-ordered oldest-first by the caller.
_RECENT_MESSAGES_SQL = """\
SELECT id, session_id, role, content, sources, created_at
FROM chat_messages
WHERE session_id = ?
ORDER BY created_at DESC, rowid DESC
LIMIT ?;
"""


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class SQLiteChatStore(IChatStore):
    """SQLite-backed chat persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the session and message tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            await db.commit()
        logger.info("chat_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, session_id: str) -> ChatSession:
        now = _now()
        await self._write(_INSERT_SESSION_SQL, (session_id, now.isoformat(), now.isoformat()))
        logger.info("chat_session_created", session_id=session_id)
        return ChatSession(id=session_id, created_at=now, last_seen_at=now)

    async def ensure_session(self, session_id: str) -> None:
        now = _now().isoformat()
        await self._write(_ENSURE_SESSION_SQL, (session_id, now, now))

    async def touch_session(self, session_id: str) -> None:
        await self._write(
            "UPDATE chat_sessions SET last_seen_at = ? WHERE id = ?",
            (_now().isoformat(), session_id),
        )

    async def get_session(self, session_id: str) -> ChatSession | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT id, created_at, last_seen_at FROM chat_sessions WHERE id = ?",
                    (session_id,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Session lookup failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if row is None:
            return None
        return ChatSession(
            id=row["id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_seen_at=datetime.fromisoformat(row["last_seen_at"]),
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def add_message(self, message: ChatMessage) -> ChatMessage:
        sources_json = json.dumps([s.model_dump() for s in message.sources])
        await self._write(
            _INSERT_MESSAGE_SQL,
            (
                message.id,
                message.session_id,
                message.role.value,
                message.content,
                sources_json,
                message.created_at.isoformat(),
            ),
        )
        logger.debug(
            "chat_message_saved",
            session_id=message.session_id,
            role=message.role.value,
            sources=len(message.sources),
        )
        return message

    async def get_recent_messages(self, session_id: str, limit: int = 10) -> list[ChatMessage]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_RECENT_MESSAGES_SQL, (session_id, limit))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to load history for {session_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        messages = [
            ChatMessage(
                id=r["id"],
                session_id=r["session_id"],
                role=ChatRole(r["role"]),
                content=r["content"],
                sources=[Source.model_validate(s) for s in json.loads(r["sources"] or "[]")],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]
        messages.reverse()
        return messages

    def get_provider_name(self) -> str:
        return "sqlite_chat"

    async def _write(self, sql: str, params: tuple) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(sql, params)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Chat store write failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
