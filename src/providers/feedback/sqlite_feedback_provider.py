"""SQLite-backed feedback provider.

Persists visitor thumbs up/down ratings on assistant messages to the
``chat_feedback`` table.  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.feedback_provider import IFeedbackProvider
from src.models.chat import Feedback, FeedbackRating
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/assistant.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS chat_feedback (
    id          TEXT PRIMARY KEY,
    session_id  TEXT NOT NULL,
    message_id  TEXT NOT NULL,
    rating      TEXT NOT NULL CHECK (rating IN ('up', 'down')),
    category    TEXT,
    comment     TEXT,
    created_at  TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_feedback_session ON chat_feedback(session_id);",
    "CREATE INDEX IF NOT EXISTS idx_feedback_message ON chat_feedback(message_id);",
]

_INSERT_SQL = """\
INSERT INTO chat_feedback (id, session_id, message_id, rating, category, comment, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""


class SQLiteFeedbackProvider(IFeedbackProvider):
    """SQLite-backed feedback persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the feedback table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("feedback_db_initialized", path=str(self._db_path))

    async def submit_feedback(self, feedback: Feedback) -> Feedback:
        """Store one feedback entry and return it with ``created_at`` set."""
        created_at = feedback.created_at or datetime.now(tz=timezone.utc)  # noqa: UP017
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        feedback.id,
                        feedback.session_id,
                        feedback.message_id,
                        feedback.rating.value,
                        feedback.category,
                        feedback.comment,
                        created_at.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to save feedback: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "feedback_submitted",
            session_id=feedback.session_id,
            message_id=feedback.message_id,
            rating=feedback.rating.value,
            category=feedback.category,
        )
        return feedback.model_copy(update={"created_at": created_at})

    async def get_feedback(self, session_id: str) -> list[Feedback]:
        """Return all feedback for a session, newest first."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT id, session_id, message_id, rating, category, comment, created_at "
                    "FROM chat_feedback WHERE session_id = ? ORDER BY created_at DESC",
                    (session_id,),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to load feedback: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return [
            Feedback(
                id=r["id"],
                session_id=r["session_id"],
                message_id=r["message_id"],
                rating=FeedbackRating(r["rating"]),
                category=r["category"],
                comment=r["comment"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_feedback"
