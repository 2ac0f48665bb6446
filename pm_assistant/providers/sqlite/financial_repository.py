"""SQLite-backed financial snapshot repository.

One row per ``(community_id, year, month)``; re-extraction overwrites the
row via ``ON CONFLICT ... DO UPDATE``.  Breakdown sections are stored as
JSON text.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from pm_assistant.interfaces.financial_repository import IFinancialSnapshotRepository
from pm_assistant.models.financial import FinancialSnapshot
from pm_assistant.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/pm_assistant.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS financial_snapshots (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    community_id        TEXT    NOT NULL,
    year                INTEGER NOT NULL,
    month               INTEGER NOT NULL,
    source_document_id  TEXT,
    statement_date      TEXT,
    income_breakdown    TEXT    NOT NULL DEFAULT '{}',
    expense_breakdown   TEXT    NOT NULL DEFAULT '{}',
    balance_sheet       TEXT    NOT NULL DEFAULT '{}',
    total_income        REAL,
    total_expenses      REAL,
    net_income          REAL,
    ytd_income          REAL,
    ytd_expenses        REAL,
    ytd_net_income      REAL,
    assessment_income   REAL,
    collection_rate     REAL,
    extraction_version  INTEGER NOT NULL DEFAULT 1,
    extracted_at        TEXT,
    UNIQUE(community_id, year, month)
);
"""

_UPSERT_SQL = """\
INSERT INTO financial_snapshots (
    community_id, year, month, source_document_id, statement_date,
    income_breakdown, expense_breakdown, balance_sheet,
    total_income, total_expenses, net_income,
    ytd_income, ytd_expenses, ytd_net_income,
    assessment_income, collection_rate, extraction_version, extracted_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(community_id, year, month)
DO UPDATE SET source_document_id = excluded.source_document_id,
              statement_date     = excluded.statement_date,
              income_breakdown   = excluded.income_breakdown,
              expense_breakdown  = excluded.expense_breakdown,
              balance_sheet      = excluded.balance_sheet,
              total_income       = excluded.total_income,
              total_expenses     = excluded.total_expenses,
              net_income         = excluded.net_income,
              ytd_income         = excluded.ytd_income,
              ytd_expenses       = excluded.ytd_expenses,
              ytd_net_income     = excluded.ytd_net_income,
              assessment_income  = excluded.assessment_income,
              collection_rate    = excluded.collection_rate,
              extraction_version = excluded.extraction_version,
              extracted_at       = excluded.extracted_at;
"""


def _row_to_snapshot(row: aiosqlite.Row) -> FinancialSnapshot:
    return FinancialSnapshot(
        community_id=row["community_id"],
        year=row["year"],
        month=row["month"],
        source_document_id=row["source_document_id"],
        statement_date=date.fromisoformat(row["statement_date"]) if row["statement_date"] else None,
        income_breakdown=json.loads(row["income_breakdown"] or "{}"),
        expense_breakdown=json.loads(row["expense_breakdown"] or "{}"),
        balance_sheet=json.loads(row["balance_sheet"] or "{}"),
        total_income=row["total_income"],
        total_expenses=row["total_expenses"],
        net_income=row["net_income"],
        ytd_income=row["ytd_income"],
        ytd_expenses=row["ytd_expenses"],
        ytd_net_income=row["ytd_net_income"],
        assessment_income=row["assessment_income"],
        collection_rate=row["collection_rate"],
        extraction_version=row["extraction_version"],
        extracted_at=datetime.fromisoformat(row["extracted_at"]) if row["extracted_at"] else None,
    )


class SQLiteFinancialRepository(IFinancialSnapshotRepository):
    """SQLite persistence for monthly financial snapshots."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.commit()
        logger.info("financial_db_initialized", path=str(self._db_path))

    async def get_snapshot(self, community_id: str, year: int, month: int) -> FinancialSnapshot | None:
        rows = await self._fetch(
            "SELECT * FROM financial_snapshots WHERE community_id = ? AND year = ? AND month = ?",
            (community_id, year, month),
        )
        return _row_to_snapshot(rows[0]) if rows else None

    async def upsert_snapshot(self, snapshot: FinancialSnapshot) -> None:
        params: tuple[Any, ...] = (
            snapshot.community_id,
            snapshot.year,
            snapshot.month,
            snapshot.source_document_id,
            snapshot.statement_date.isoformat() if snapshot.statement_date else None,
            json.dumps(snapshot.income_breakdown),
            json.dumps(snapshot.expense_breakdown),
            json.dumps(snapshot.balance_sheet),
            snapshot.total_income,
            snapshot.total_expenses,
            snapshot.net_income,
            snapshot.ytd_income,
            snapshot.ytd_expenses,
            snapshot.ytd_net_income,
            snapshot.assessment_income,
            snapshot.collection_rate,
            snapshot.extraction_version,
            (snapshot.extracted_at or datetime.now()).isoformat(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, params)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Snapshot upsert failed: {exc}", provider_name="sqlite") from exc

        logger.info(
            "financial_snapshot_saved",
            community_id=snapshot.community_id,
            year=snapshot.year,
            month=snapshot.month,
        )

    async def list_snapshots(
        self,
        community_id: str,
        year: int,
        descending: bool = False,
    ) -> list[FinancialSnapshot]:
        order = "DESC" if descending else "ASC"
        rows = await self._fetch(
            "SELECT * FROM financial_snapshots WHERE community_id = ? AND year = ? "
            f"ORDER BY month {order}",
            (community_id, year),
        )
        return [_row_to_snapshot(r) for r in rows]

    async def _fetch(self, sql: str, params: tuple[Any, ...]) -> list[aiosqlite.Row]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Snapshot query failed: {exc}", provider_name="sqlite") from exc
