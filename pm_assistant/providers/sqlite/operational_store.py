"""SQLite-backed read-only view of the back-office database.

The back office owns these tables; :meth:`SQLiteOperationalStore.initialize`
only creates them when missing so a local database (or a test fixture) can
be seeded.  Every query method is a SELECT.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from pm_assistant.interfaces.operational_store import IOperationalStore, Row
from pm_assistant.models.community import CommunityRecord
from pm_assistant.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/pm_assistant.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS communities (
    community_id    TEXT    PRIMARY KEY,
    property_code   TEXT,
    display_name    TEXT,
    legal_name      TEXT,
    address         TEXT,
    address2        TEXT,
    city            TEXT,
    state           TEXT,
    zipcode         TEXT,
    active          INTEGER NOT NULL DEFAULT 1,
    client_type     TEXT,
    service_type    TEXT,
    contract_start  TEXT,
    contract_end    TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS management_fees (
    community_id            TEXT PRIMARY KEY,
    management_fee          REAL,
    per_unit_fee            REAL,
    fee_type                TEXT,
    increase_type           TEXT,
    increase_effective      TEXT,
    board_approval_required INTEGER,
    auto_increase           INTEGER,
    fixed_cost              REAL
);
""",
    """\
CREATE TABLE IF NOT EXISTS board_information (
    community_id              TEXT PRIMARY KEY,
    annual_meeting_frequency  TEXT,
    regular_meeting_frequency TEXT,
    board_members_required    INTEGER,
    quorum                    INTEGER,
    term_limits               TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS stakeholders (
    stakeholder_id           TEXT PRIMARY KEY,
    community_id             TEXT NOT NULL,
    type                     TEXT,
    sub_type                 TEXT,
    first_name               TEXT,
    last_name                TEXT,
    company_name             TEXT,
    email                    TEXT,
    phone                    TEXT,
    mobile_phone             TEXT,
    preferred_contact_method TEXT,
    status                   TEXT,
    title                    TEXT,
    department               TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS billing_information (
    community_id        TEXT PRIMARY KEY,
    billing_frequency   TEXT,
    billing_month       INTEGER,
    billing_day         INTEGER,
    notice_requirement  TEXT,
    coupon              INTEGER
);
""",
    """\
CREATE TABLE IF NOT EXISTS invoices (
    invoice_id      TEXT PRIMARY KEY,
    community_id    TEXT NOT NULL,
    invoice_number  TEXT,
    invoice_date    TEXT,
    total           REAL,
    status          TEXT,
    file_id         TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS invoice_charges (
    charge_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id      TEXT NOT NULL,
    description     TEXT,
    amount          REAL,
    display_order   INTEGER NOT NULL DEFAULT 0
);
""",
    """\
CREATE TABLE IF NOT EXISTS fee_variances (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    community_id    TEXT NOT NULL,
    fee_name        TEXT,
    default_amount  REAL,
    variance_type   TEXT,
    custom_amount   REAL,
    notes           TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS commitment_fees (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    community_id     TEXT NOT NULL,
    commitment_type  TEXT,
    entry_type       TEXT,
    fee_name         TEXT,
    value            REAL,
    notes            TEXT
);
""",
]


class SQLiteOperationalStore(IOperationalStore):
    """Read-only SQLite queries over communities, fees, stakeholders and invoices."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the back-office tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            await db.commit()
        logger.info("operational_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # IOperationalStore implementation
    # ------------------------------------------------------------------

    async def list_community_directory(self) -> list[CommunityRecord]:
        rows = await self._fetch_all(
            "SELECT community_id, display_name, legal_name, property_code "
            "FROM communities ORDER BY display_name ASC",
        )
        return [CommunityRecord(**row) for row in rows]

    async def get_community(self, community_id: str) -> Row | None:
        return await self._fetch_one("SELECT * FROM communities WHERE community_id = ?", (community_id,))

    async def get_management_fee(self, community_id: str) -> Row | None:
        return await self._fetch_one("SELECT * FROM management_fees WHERE community_id = ?", (community_id,))

    async def get_board_information(self, community_id: str) -> Row | None:
        return await self._fetch_one("SELECT * FROM board_information WHERE community_id = ?", (community_id,))

    async def list_stakeholders(self, community_id: str, stakeholder_type: str | None = None) -> list[Row]:
        sql = "SELECT * FROM stakeholders WHERE community_id = ?"
        params: tuple[Any, ...] = (community_id,)
        if stakeholder_type:
            sql += " AND type = ?"
            params = (community_id, stakeholder_type)
        sql += " ORDER BY type ASC, last_name ASC, first_name ASC"
        return await self._fetch_all(sql, params)

    async def get_billing_information(self, community_id: str) -> Row | None:
        return await self._fetch_one("SELECT * FROM billing_information WHERE community_id = ?", (community_id,))

    async def list_invoices(self, community_id: str) -> list[Row]:
        return await self._fetch_all(
            "SELECT * FROM invoices WHERE community_id = ? ORDER BY invoice_date DESC",
            (community_id,),
        )

    async def get_invoice(self, invoice_id: str) -> Row | None:
        return await self._fetch_one("SELECT * FROM invoices WHERE invoice_id = ?", (invoice_id,))

    async def list_invoice_charges(self, invoice_id: str) -> list[Row]:
        return await self._fetch_all(
            "SELECT * FROM invoice_charges WHERE invoice_id = ? ORDER BY display_order ASC",
            (invoice_id,),
        )

    async def list_fee_variances(self, community_id: str) -> list[Row]:
        return await self._fetch_all(
            "SELECT * FROM fee_variances WHERE community_id = ? ORDER BY id ASC",
            (community_id,),
        )

    async def list_commitment_fees(self, community_id: str) -> list[Row]:
        return await self._fetch_all(
            "SELECT * FROM commitment_fees WHERE community_id = ? ORDER BY id ASC",
            (community_id,),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[Row]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Operational query failed: {exc}", provider_name="sqlite") from exc
        return [dict(r) for r in rows]

    async def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> Row | None:
        rows = await self._fetch_all(sql, params)
        return rows[0] if rows else None
