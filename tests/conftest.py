"""Shared pytest fixtures for the pm-assistant test suite."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import aiosqlite
import fitz
import pytest
import pytest_asyncio

# Import main eagerly: its module-level configure_logging() binds structlog to
# sys.stderr, which must be the session-wide capture stream rather than a
# per-test capsys buffer that is closed after the test that first imports it.
import pm_assistant.main  # noqa: F401
from pm_assistant.interfaces.embedding_provider import IEmbeddingProvider
from pm_assistant.interfaces.llm_provider import ILLMProvider
from pm_assistant.interfaces.object_store import IObjectStore
from pm_assistant.interfaces.operational_store import IOperationalStore
from pm_assistant.interfaces.vector_store_provider import IVectorStoreProvider
from pm_assistant.models.community import CommunityRecord
from pm_assistant.models.documents import Document, DocumentScope
from pm_assistant.models.rag import VectorStoreStats
from pm_assistant.providers.cache.memory_cache import MemoryCacheProvider
from pm_assistant.providers.sqlite.document_repository import SQLiteDocumentRepository
from pm_assistant.providers.sqlite.financial_repository import SQLiteFinancialRepository
from pm_assistant.providers.sqlite.operational_store import SQLiteOperationalStore
from pm_assistant.services.community_resolver import CommunityResolver

EMBEDDING_DIM = 8


# ---------------------------------------------------------------------------
# Documents and PDFs
# ---------------------------------------------------------------------------


@pytest.fixture
def make_document() -> Callable[..., Document]:
    """Return a factory for PDF documents owned by community ``c-lakeside``."""

    def _make(document_id: str = "doc-1", **overrides: Any) -> Document:
        fields: dict[str, Any] = {
            "document_id": document_id,
            "display_name": f"{document_id}.pdf",
            "scope": DocumentScope.COMMUNITY,
            "owner_community_id": "c-lakeside",
            "storage_locator": f"communities/c-lakeside/{document_id}.pdf",
            "folder_id": "folder-1",
            "folder_name": "Governing Documents",
            "created_at": datetime(2025, 1, 15, 9, 30),
        }
        fields.update(overrides)
        return Document(**fields)

    return _make


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Return a factory that renders one PDF page per string with PyMuPDF."""

    def _make(pages: list[str], title: str | None = None) -> bytes:
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text, fontsize=11)
        if title:
            doc.set_metadata({"title": title})
        data = doc.tobytes()
        doc.close()
        return data

    return _make


# ---------------------------------------------------------------------------
# Provider mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MagicMock:
    """Embedding provider returning one fixed-size vector per input text."""
    mock = MagicMock(spec=IEmbeddingProvider)
    mock.embed = AsyncMock(side_effect=lambda texts: [[0.1] * EMBEDDING_DIM for _ in texts])
    mock.embed_single = AsyncMock(return_value=[0.1] * EMBEDDING_DIM)
    mock.get_dimension.return_value = EMBEDDING_DIM
    mock.get_provider_name.return_value = "mock_embedding"
    mock.is_available.return_value = True
    return mock


@pytest.fixture
def mock_vector_store() -> MagicMock:
    mock = MagicMock(spec=IVectorStoreProvider)
    mock.upsert_batch = AsyncMock(side_effect=lambda records: len(records))
    mock.similarity_search = AsyncMock(return_value=[])
    mock.delete_by_document_id = AsyncMock(return_value=0)
    mock.delete_version = AsyncMock(return_value=0)
    mock.count = AsyncMock(return_value=0)
    mock.get_stats = AsyncMock(return_value=VectorStoreStats(collection_name="test", total_records=0))
    mock.get_provider_name.return_value = "mock_vector_store"
    mock.is_available.return_value = True
    return mock


@pytest.fixture
def mock_llm_provider() -> MagicMock:
    mock = MagicMock(spec=ILLMProvider)
    mock.complete = AsyncMock(return_value="{}")
    mock.converse = AsyncMock()
    mock.get_model_name.return_value = "mock-model"
    mock.get_provider_name.return_value = "mock_llm"
    mock.is_available.return_value = True
    return mock


@pytest.fixture
def mock_object_store() -> MagicMock:
    """Object store whose ``read`` returns whatever ``contents[locator]`` holds."""
    mock = MagicMock(spec=IObjectStore)
    mock.contents = {}

    async def _read(locator: str) -> bytes:
        return mock.contents[locator]

    mock.read = AsyncMock(side_effect=_read)
    mock.get_provider_name.return_value = "mock_objects"
    return mock


# ---------------------------------------------------------------------------
# Community directory
# ---------------------------------------------------------------------------


@pytest.fixture
def community_directory() -> list[CommunityRecord]:
    return [
        CommunityRecord(
            community_id="c-lakeside",
            display_name="Lakeside",
            legal_name="Lakeside Homeowners Association",
            property_code="LKS",
        ),
        CommunityRecord(
            community_id="c-oak-ridge",
            display_name="Oak Ridge Estates",
            legal_name="Oak Ridge Estates Community Association",
            property_code="ORE",
        ),
        CommunityRecord(
            community_id="c-willow",
            display_name="Willow Creek Commons",
            legal_name=None,
            property_code="WCC",
        ),
    ]


@pytest.fixture
def mock_operational_store(community_directory: list[CommunityRecord]) -> MagicMock:
    mock = MagicMock(spec=IOperationalStore)
    mock.list_community_directory = AsyncMock(return_value=community_directory)
    return mock


@pytest.fixture
def resolver(mock_operational_store: MagicMock) -> CommunityResolver:
    return CommunityResolver(store=mock_operational_store, cache=MemoryCacheProvider(ttl=300))


# ---------------------------------------------------------------------------
# SQLite stores in tmp_path
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "pm_assistant.db"


@pytest_asyncio.fixture
async def document_repository(db_path: Path) -> SQLiteDocumentRepository:
    repo = SQLiteDocumentRepository(db_path=db_path)
    await repo.initialize()
    return repo


@pytest_asyncio.fixture
async def financial_repository(db_path: Path) -> SQLiteFinancialRepository:
    repo = SQLiteFinancialRepository(db_path=db_path)
    await repo.initialize()
    return repo


@pytest_asyncio.fixture
async def operational_store(db_path: Path) -> SQLiteOperationalStore:
    """Operational store seeded with two communities and their records."""
    store = SQLiteOperationalStore(db_path=db_path)
    await store.initialize()

    async with aiosqlite.connect(str(db_path)) as db:
        await db.executemany(
            "INSERT INTO communities (community_id, property_code, display_name, legal_name, address, "
            "address2, city, state, zipcode, active, client_type, service_type, contract_start, contract_end) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    "c-lakeside", "LKS", "Lakeside", "Lakeside Homeowners Association",
                    "100 Shore Dr", None, "Austin", "TX", "78701", 1, "HOA", "Full Service",
                    "2023-01-01", "2026-12-31",
                ),
                (
                    "c-oak-ridge", "ORE", "Oak Ridge Estates", "Oak Ridge Estates Community Association",
                    "5 Ridge Rd", "Suite 2", "Dallas", "TX", "75201", 0, "HOA", "Financial Only",
                    "2022-06-01", None,
                ),
            ],
        )
        await db.execute(
            "INSERT INTO management_fees (community_id, management_fee, per_unit_fee, fee_type, "
            "increase_type, increase_effective, board_approval_required, auto_increase, fixed_cost) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            ("c-lakeside", 2500.0, 12.5, "Per Unit", "CPI", "2025-01-01", 1, 0, None),
        )
        await db.execute(
            "INSERT INTO board_information (community_id, annual_meeting_frequency, "
            "regular_meeting_frequency, board_members_required, quorum, term_limits) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            ("c-lakeside", "Annually", "Quarterly", 5, 3, "2 years"),
        )
        await db.executemany(
            "INSERT INTO stakeholders (stakeholder_id, community_id, type, sub_type, first_name, "
            "last_name, company_name, email, phone, status, title) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                ("s1", "c-lakeside", "Board Member", "Treasurer", "Ann", "Adams", None, "ann@x.org", None, "Active", None),
                ("s2", "c-lakeside", "Board Member", "President", "Zed", "Young", None, "zed@x.org", None, "Active", None),
                ("s3", "c-lakeside", "Board Member", "Director", "Bea", "Brown", None, None, None, "Active", None),
                ("s4", "c-lakeside", "Vendor", None, None, None, "Pool Pros LLC", "ops@pool.com", None, "Active", None),
            ],
        )
        await db.execute(
            "INSERT INTO billing_information (community_id, billing_frequency, billing_month, billing_day, "
            "notice_requirement, coupon) VALUES (?, ?, ?, ?, ?, ?)",
            ("c-lakeside", "Monthly", 1, 1, "30 days", 1),
        )
        await db.executemany(
            "INSERT INTO invoices (invoice_id, community_id, invoice_number, invoice_date, total, status, file_id) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                ("inv-1", "c-lakeside", "1001", "2025-01-31", 2500.0, "Paid", "f-1"),
                ("inv-2", "c-lakeside", "1002", "2025-02-28", 2500.0, "Paid", "f-2"),
                ("inv-3", "c-lakeside", "1003", "2025-03-31", 2650.0, "Open", None),
            ],
        )
        await db.executemany(
            "INSERT INTO invoice_charges (invoice_id, description, amount, display_order) VALUES (?, ?, ?, ?)",
            [
                ("inv-3", "Postage", 150.0, 2),
                ("inv-3", "Management fee", 2500.0, 1),
            ],
        )
        await db.execute(
            "INSERT INTO fee_variances (community_id, fee_name, default_amount, variance_type, custom_amount, notes) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            ("c-lakeside", "Resale Certificate", 375.0, "Custom", 300.0, "Board negotiated"),
        )
        await db.execute(
            "INSERT INTO commitment_fees (community_id, commitment_type, entry_type, fee_name, value, notes) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            ("c-lakeside", "Meetings", "Included", "Board meetings", 4.0, "Per year"),
        )
        await db.commit()

    return store
