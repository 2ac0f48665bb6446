"""SQLite-backed document repository.

Stores document metadata and indexing state in the ``documents`` table of
the local database.  Uses ``aiosqlite`` for async I/O; every call opens its
own short-lived connection.

Indexing is a two-step compare-and-swap.  ``claim_indexing`` bumps
``indexing_version`` only if it still equals the version the caller read,
before any vector is written; ``commit_indexed`` then only matches while
the stored version is still the claimed one.  A later claim therefore
invalidates every earlier in-flight run.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from pm_assistant.interfaces.document_repository import IDocumentRepository
from pm_assistant.models.documents import Document, DocumentScope, IndexingState
from pm_assistant.utils.errors import DocumentNotFoundError, IndexingConflictError, StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/pm_assistant.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    document_id         TEXT    PRIMARY KEY,
    display_name        TEXT    NOT NULL,
    content_type        TEXT    NOT NULL,
    scope               TEXT    NOT NULL DEFAULT 'Community',
    owner_community_id  TEXT,
    storage_locator     TEXT    NOT NULL,
    folder_id           TEXT,
    folder_name         TEXT,
    created_at          TEXT,
    is_indexed          INTEGER NOT NULL DEFAULT 0,
    last_indexed_at     TEXT,
    indexing_version    INTEGER NOT NULL DEFAULT 0,
    content_hash        TEXT,
    chunk_count         INTEGER NOT NULL DEFAULT 0,
    last_error          TEXT,
    force_reindex       INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_community ON documents(owner_community_id);",
    "CREATE INDEX IF NOT EXISTS idx_documents_indexed ON documents(is_indexed);",
]

_UPSERT_SQL = """\
INSERT INTO documents (
    document_id, display_name, content_type, scope, owner_community_id,
    storage_locator, folder_id, folder_name, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(document_id)
DO UPDATE SET display_name       = excluded.display_name,
              content_type       = excluded.content_type,
              scope              = excluded.scope,
              owner_community_id = excluded.owner_community_id,
              storage_locator    = excluded.storage_locator,
              folder_id          = excluded.folder_id,
              folder_name        = excluded.folder_name,
              created_at         = excluded.created_at;
"""

_CLAIM_SQL = """\
UPDATE documents
SET indexing_version = indexing_version + 1,
    force_reindex    = 0
WHERE document_id = ? AND indexing_version = ?;
"""

_COMMIT_INDEXED_SQL = """\
UPDATE documents
SET is_indexed       = 1,
    last_indexed_at  = ?,
    content_hash     = ?,
    chunk_count      = ?,
    last_error       = NULL,
    force_reindex    = 0
WHERE document_id = ? AND indexing_version = ?;
"""


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_document(row: aiosqlite.Row) -> Document:
    return Document(
        document_id=row["document_id"],
        display_name=row["display_name"],
        content_type=row["content_type"],
        scope=DocumentScope(row["scope"]),
        owner_community_id=row["owner_community_id"],
        storage_locator=row["storage_locator"],
        folder_id=row["folder_id"],
        folder_name=row["folder_name"],
        created_at=_parse_dt(row["created_at"]),
        state=IndexingState(
            is_indexed=bool(row["is_indexed"]),
            last_indexed_at=_parse_dt(row["last_indexed_at"]),
            indexing_version=row["indexing_version"],
            content_hash=row["content_hash"],
            chunk_count=row["chunk_count"],
            last_error=row["last_error"],
            force_reindex=bool(row["force_reindex"]),
        ),
    )


class SQLiteDocumentRepository(IDocumentRepository):
    """SQLite persistence for documents and their indexing state."""

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

    async def save_document(self, document: Document) -> None:
        """Insert or refresh a document's descriptive fields.

        Used by back-office sync jobs; indexing state is left untouched.
        """
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _UPSERT_SQL,
                    (
                        document.document_id,
                        document.display_name,
                        document.content_type,
                        document.scope.value,
                        document.owner_community_id,
                        document.storage_locator,
                        document.folder_id,
                        document.folder_name,
                        document.created_at.isoformat() if document.created_at else None,
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Document save failed: {exc}", provider_name="sqlite") from exc

    async def get_document(self, document_id: str) -> Document | None:
        rows = await self._fetch("SELECT * FROM documents WHERE document_id = ?", (document_id,))
        return _row_to_document(rows[0]) if rows else None

    async def list_documents(
        self,
        content_type: str | None = None,
        community_id: str | None = None,
        folder_type: DocumentScope | None = None,
    ) -> list[Document]:
        clauses: list[str] = []
        params: list[Any] = []
        if content_type:
            clauses.append("content_type = ?")
            params.append(content_type)
        if community_id:
            clauses.append("owner_community_id = ?")
            params.append(community_id)
        if folder_type:
            clauses.append("scope = ?")
            params.append(DocumentScope(folder_type).value)
        sql = "SELECT * FROM documents"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at ASC, document_id ASC"
        rows = await self._fetch(sql, tuple(params))
        return [_row_to_document(r) for r in rows]

    async def claim_indexing(self, document_id: str, expected_version: int) -> int:
        updated = await self._execute(_CLAIM_SQL, (document_id, expected_version))
        if updated == 0:
            await self._raise_conflict(document_id, expected_version, "claimed")
        logger.debug("indexing_claimed", document_id=document_id, version=expected_version + 1)
        return expected_version + 1

    async def commit_indexed(
        self,
        document_id: str,
        claimed_version: int,
        content_hash: str,
        chunk_count: int,
        indexed_at: datetime,
    ) -> IndexingState:
        updated = await self._execute(
            _COMMIT_INDEXED_SQL,
            (indexed_at.isoformat(), content_hash, chunk_count, document_id, claimed_version),
        )
        if updated == 0:
            await self._raise_conflict(document_id, claimed_version, "committed")

        return IndexingState(
            is_indexed=True,
            last_indexed_at=indexed_at,
            indexing_version=claimed_version,
            content_hash=content_hash,
            chunk_count=chunk_count,
        )

    async def mark_failed(self, document_id: str, error: str) -> None:
        # The force flag buys one attempt; a repeat failure blocks again.
        await self._execute(
            "UPDATE documents SET is_indexed = 0, last_error = ?, force_reindex = 0 WHERE document_id = ?",
            (error, document_id),
        )

    async def reset_failed(self, community_id: str | None = None) -> int:
        sql = "UPDATE documents SET force_reindex = 1 WHERE last_error IS NOT NULL"
        params: tuple[Any, ...] = ()
        if community_id:
            sql += " AND owner_community_id = ?"
            params = (community_id,)
        count = await self._execute(sql, params)
        logger.info("failed_documents_reset", community_id=community_id, count=count)
        return count

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _raise_conflict(self, document_id: str, expected_version: int, action: str) -> None:
        current = await self.get_document(document_id)
        if current is None:
            raise DocumentNotFoundError(message=f"Document {document_id} not found")
        logger.warning(
            "indexing_version_conflict",
            document_id=document_id,
            expected_version=expected_version,
            stored_version=current.state.indexing_version,
        )
        raise IndexingConflictError(
            message=(
                f"Document {document_id} could not be {action}: another run holds it "
                f"(expected version {expected_version}, found {current.state.indexing_version})"
            ),
        )

    async def _fetch(self, sql: str, params: tuple[Any, ...]) -> list[aiosqlite.Row]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Document query failed: {exc}", provider_name="sqlite") from exc

    async def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, params)
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Document update failed: {exc}", provider_name="sqlite") from exc
