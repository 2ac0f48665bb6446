"""Abstract base class for monthly financial snapshot storage."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pm_assistant.models.financial import FinancialSnapshot


# Concrete implementation: SQLiteFinancialRepository (pm_assistant/providers/sqlite/)
class IFinancialSnapshotRepository(ABC):
    """Snapshots are unique per ``(community_id, year, month)``."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create backing tables if needed."""

    @abstractmethod
    async def get_snapshot(self, community_id: str, year: int, month: int) -> FinancialSnapshot | None:
        """Return the snapshot for the period, or ``None``."""

    @abstractmethod
    async def upsert_snapshot(self, snapshot: FinancialSnapshot) -> None:
        """Overwrite the period's snapshot if present, else insert it."""

    @abstractmethod
    async def list_snapshots(
        self,
        community_id: str,
        year: int,
        descending: bool = False,
    ) -> list[FinancialSnapshot]:
        """Return the year's snapshots ordered by month."""
