"""Abstract base class for read-only access to the back-office database.

Communities, fees, stakeholders, billing and invoices are owned by the
back office.  The assistant never writes to them; every method here is a
lookup.  Rows are returned as plain dicts keyed by snake_case column name.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pm_assistant.models.community import CommunityRecord

Row = dict[str, Any]


# Concrete implementation: SQLiteOperationalStore (pm_assistant/providers/sqlite/)
class IOperationalStore(ABC):
    """Read-only queries used by community resolution and data functions.

    Implementations raise :class:`~pm_assistant.utils.errors.StoreError`
    when the backend fails.
    """

    @abstractmethod
    async def list_community_directory(self) -> list[CommunityRecord]:
        """Return every community's id, names and property code."""

    @abstractmethod
    async def get_community(self, community_id: str) -> Row | None:
        """Return the community row, or ``None``."""

    @abstractmethod
    async def get_management_fee(self, community_id: str) -> Row | None:
        """Return the community's management fee row, or ``None``."""

    @abstractmethod
    async def get_board_information(self, community_id: str) -> Row | None:
        """Return meeting frequency, quorum and term limit settings, or ``None``."""

    @abstractmethod
    async def list_stakeholders(self, community_id: str, stakeholder_type: str | None = None) -> list[Row]:
        """Return stakeholders ordered by type, last name, first name."""

    @abstractmethod
    async def get_billing_information(self, community_id: str) -> Row | None:
        """Return the community's billing settings, or ``None``."""

    @abstractmethod
    async def list_invoices(self, community_id: str) -> list[Row]:
        """Return invoices, newest invoice date first."""

    @abstractmethod
    async def get_invoice(self, invoice_id: str) -> Row | None:
        """Return one invoice row, or ``None``."""

    @abstractmethod
    async def list_invoice_charges(self, invoice_id: str) -> list[Row]:
        """Return an invoice's charges ordered by display order."""

    @abstractmethod
    async def list_fee_variances(self, community_id: str) -> list[Row]:
        """Return the community's fee variances."""

    @abstractmethod
    async def list_commitment_fees(self, community_id: str) -> list[Row]:
        """Return the community's commitment fees."""
