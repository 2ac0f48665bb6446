"""Abstract base class for document metadata and indexing state.

Indexing runs claim ``indexing_version`` with a compare-and-swap before
touching the vector store and commit against the claimed version, so two
runs over the same document cannot both win.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from pm_assistant.models.documents import Document, DocumentScope, IndexingState


# Concrete implementation: SQLiteDocumentRepository (pm_assistant/providers/sqlite/)
class IDocumentRepository(ABC):
    """Contract for reading documents and recording their indexing state."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create backing tables if needed."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document with *document_id*, or ``None``."""

    @abstractmethod
    async def list_documents(
        self,
        content_type: str | None = None,
        community_id: str | None = None,
        folder_type: DocumentScope | None = None,
    ) -> list[Document]:
        """Return documents matching every provided filter, oldest first."""

    @abstractmethod
    async def claim_indexing(self, document_id: str, expected_version: int) -> int:
        """Take the next ``indexing_version`` before writing any vectors.

        Bumps the version to ``expected_version + 1`` and clears
        ``force_reindex``, only if the stored version still equals
        *expected_version*.

        Returns
        -------
        int
            The claimed version; pass it to :meth:`commit_indexed` and use
            it to tag the run's vector records.

        Raises
        ------
        pm_assistant.utils.errors.IndexingConflictError
            If another run already moved the version on.
        """

    @abstractmethod
    async def commit_indexed(
        self,
        document_id: str,
        claimed_version: int,
        content_hash: str,
        chunk_count: int,
        indexed_at: datetime,
    ) -> IndexingState:
        """Record a successful index run.

        Sets ``is_indexed``, the hash, chunk count and timestamp and clears
        ``last_error`` and ``force_reindex``.  The version is left at
        *claimed_version*.

        Returns
        -------
        IndexingState
            The committed state.

        Raises
        ------
        pm_assistant.utils.errors.IndexingConflictError
            If a later run claimed the document in the meantime.
        """

    @abstractmethod
    async def mark_failed(self, document_id: str, error: str) -> None:
        """Set ``is_indexed`` false, store *error* and clear ``force_reindex``."""

    @abstractmethod
    async def reset_failed(self, community_id: str | None = None) -> int:
        """Set ``force_reindex`` on every failed document; return how many."""
