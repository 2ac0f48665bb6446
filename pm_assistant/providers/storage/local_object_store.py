"""Filesystem-backed object store.

Locators are paths relative to ``DOCUMENT_STORAGE_ROOT``; a locator that
resolves outside the root is rejected.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from pm_assistant.interfaces.object_store import IObjectStore
from pm_assistant.utils.errors import DocumentNotFoundError, StoreError

logger = structlog.get_logger(logger_name=__name__)


class LocalObjectStore(IObjectStore):
    """Reads document bytes from a directory tree."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    async def read(self, locator: str) -> bytes:
        path = (self._root / locator.lstrip("/")).resolve()
        if not path.is_relative_to(self._root):
            raise StoreError(
                message=f"Locator escapes storage root: {locator}",
                provider_name=self.get_provider_name(),
            )
        if not path.is_file():
            raise DocumentNotFoundError(
                message=f"No stored object at {locator}",
                provider_name=self.get_provider_name(),
            )
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise StoreError(
                message=f"Reading {locator} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("object_read", locator=locator, size=len(data))
        return data

    def get_provider_name(self) -> str:
        return "local"
