"""aiosqlite-backed repositories.

All three share one database file (``DATABASE_PATH``) but own separate tables.
"""

from pm_assistant.providers.sqlite.document_repository import SQLiteDocumentRepository
from pm_assistant.providers.sqlite.financial_repository import SQLiteFinancialRepository
from pm_assistant.providers.sqlite.operational_store import SQLiteOperationalStore

__all__ = ["SQLiteDocumentRepository", "SQLiteFinancialRepository", "SQLiteOperationalStore"]
