"""SQLite-backed Document record store.

Persists Document metadata and ingestion status to the shared application
database (``data/assistant.db`` by default).  Uses ``aiosqlite`` for async
I/O; each call opens its own short-lived connection.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.document_store import IDocumentStore
from src.models.document import Document, DocumentStatus
from src.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/assistant.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    source_url  TEXT,
    mime_type   TEXT NOT NULL DEFAULT 'text/plain',
    file_path   TEXT,
    status      TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'ingesting', 'ingested', 'error')),
    error_msg   TEXT,
    ingested_at TEXT,
    created_at  TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_title ON documents(title);",
    "CREATE INDEX IF NOT EXISTS idx_documents_created ON documents(created_at);",
]

_COLUMNS = "id, title, source_url, mime_type, file_path, status, error_msg, ingested_at, created_at"

_INSERT_SQL = f"""\
INSERT INTO documents ({_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPDATE_STATUS_SQL = """\
UPDATE documents
SET status = ?, error_msg = ?, ingested_at = ?
WHERE id = ?;
"""


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_document(row: aiosqlite.Row) -> Document:
    return Document(
        id=row["id"],
        title=row["title"],
        source_url=row["source_url"],
        mime_type=row["mime_type"],
        file_path=row["file_path"],
        status=DocumentStatus(row["status"]),
        error_msg=row["error_msg"],
        ingested_at=_parse_dt(row["ingested_at"]),
        created_at=_parse_dt(row["created_at"]),
    )


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed Document persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    async def create(self, document: Document) -> Document:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        document.id,
                        document.title,
                        document.source_url,
                        document.mime_type,
                        document.file_path,
                        document.status.value,
                        document.error_msg,
                        document.ingested_at.isoformat() if document.ingested_at else None,
                        document.created_at.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to create document {document.id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("document_created", document_id=document.id, title=document.title)
        return document

    async def get(self, document_id: str) -> Document | None:
        row = await self._fetch_one(
            f"SELECT {_COLUMNS} FROM documents WHERE id = ?", (document_id,)
        )
        return _row_to_document(row) if row else None

    async def find_by_title(self, title: str) -> Document | None:
        row = await self._fetch_one(
            f"SELECT {_COLUMNS} FROM documents WHERE title = ? "
            "ORDER BY created_at DESC LIMIT 1",
            (title,),
        )
        return _row_to_document(row) if row else None

    async def list_documents(self) -> list[Document]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM documents ORDER BY created_at DESC"
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to list documents: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [_row_to_document(r) for r in rows]

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        *,
        error_msg: str | None = None,
        ingested_at: datetime | None = None,
    ) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    _UPDATE_STATUS_SQL,
                    (
                        status.value,
                        error_msg,
                        ingested_at.isoformat() if ingested_at else None,
                        document_id,
                    ),
                )
                await db.commit()
                updated = cursor.rowcount
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to update document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if updated == 0:
            logger.warning("document_status_update_missed", document_id=document_id)
        logger.info("document_status", document_id=document_id, status=status.value)

    async def delete(self, document_id: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
                await db.commit()
                deleted = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Failed to delete document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return deleted

    def get_provider_name(self) -> str:
        return "sqlite_documents"

    async def _fetch_one(self, sql: str, params: tuple) -> aiosqlite.Row | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Document lookup failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
