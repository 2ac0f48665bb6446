"""Abstract base class for vector-store service providers.

Defines the contract for storing, searching and deleting embedded chunk
records.  Metadata filters are an exact-match conjunction: a record lacking
a filtered field never matches.  Shared documents carry no community id, so
callers that want them post-filter rather than filter on a null value.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pm_assistant.models.rag import ScoredRecord, VectorRecord, VectorStoreStats


# Concrete implementation: ChromaDBProvider (pm_assistant/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by indexing and retrieval.

    All query and mutation methods are async to support network-backed
    stores without blocking the event loop.
    """

    @abstractmethod
    async def upsert_batch(self, records: list[VectorRecord]) -> int:
        """Insert or replace records by ``record_id``.

        Returns
        -------
        int
            The number of records written.

        Raises
        ------
        pm_assistant.utils.errors.StoreError
            If the store rejects the write.
        """

    @abstractmethod
    async def similarity_search(
        self,
        vector: list[float],
        limit: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[ScoredRecord]:
        """Return the *limit* nearest records to *vector*.

        Parameters
        ----------
        vector:
            Query embedding.
        limit:
            Maximum number of results.
        metadata_filter:
            Optional ``{field: value}`` pairs that must all match exactly.

        Returns
        -------
        list[ScoredRecord]
            Results ordered by score, highest first.  Scores are
            ``1 - cosine distance`` clamped to [0, 1].

        Raises
        ------
        pm_assistant.utils.errors.StoreError
            If the query fails.
        """

    @abstractmethod
    async def delete_by_document_id(self, document_id: str, keep_version: int | None = None) -> int:
        """Delete every record whose ``document_id`` metadata matches.

        With *keep_version*, records whose ``indexing_version`` metadata
        equals it survive; records without a version are always deleted.

        Returns
        -------
        int
            The number of records deleted.
        """

    @abstractmethod
    async def delete_version(self, document_id: str, version: int) -> int:
        """Delete the records one indexing run wrote for *document_id*.

        Returns
        -------
        int
            The number of records deleted.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of stored records."""

    @abstractmethod
    async def get_stats(self) -> VectorStoreStats:
        """Return collection name and size."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
