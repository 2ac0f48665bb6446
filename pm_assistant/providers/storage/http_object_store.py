"""HTTP object store backed by a shared ``httpx.AsyncClient``.

Locators are joined onto ``base_url``; pre-signed absolute URLs are fetched
as-is.
"""

from __future__ import annotations

import httpx
import structlog

from pm_assistant.interfaces.object_store import IObjectStore
from pm_assistant.utils.errors import DocumentNotFoundError, StoreError

logger = structlog.get_logger(logger_name=__name__)


class HTTPObjectStore(IObjectStore):
    """Fetches document bytes over HTTP(S)."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = "") -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    def _url_for(self, locator: str) -> str:
        if locator.startswith(("http://", "https://")):
            return locator
        return f"{self._base_url}/{locator.lstrip('/')}"

    async def read(self, locator: str) -> bytes:
        url = self._url_for(locator)
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as exc:
            raise StoreError(
                message=f"Fetching {locator} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if response.status_code == 404:
            raise DocumentNotFoundError(
                message=f"No stored object at {locator}",
                provider_name=self.get_provider_name(),
            )
        if response.status_code >= 400:
            raise StoreError(
                message=f"Fetching {locator} returned HTTP {response.status_code}",
                provider_name=self.get_provider_name(),
            )
        logger.debug("object_fetched", locator=locator, size=len(response.content))
        return response.content

    def get_provider_name(self) -> str:
        return "http"
