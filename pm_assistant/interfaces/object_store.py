"""Abstract base class for document byte storage.

The back office owns uploads; indexing only needs to read a document's
bytes by its storage locator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: LocalObjectStore, HTTPObjectStore (pm_assistant/providers/storage/)
class IObjectStore(ABC):
    """Read-only access to stored document bytes."""

    @abstractmethod
    async def read(self, locator: str) -> bytes:
        """Return the bytes stored under *locator*.

        Raises
        ------
        pm_assistant.utils.errors.DocumentNotFoundError
            If nothing is stored under *locator*.
        pm_assistant.utils.errors.StoreError
            If the backend cannot be reached.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"local"``."""
