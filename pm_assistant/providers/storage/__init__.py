"""Object store adapters for reading uploaded document bytes."""

from pm_assistant.providers.storage.http_object_store import HTTPObjectStore
from pm_assistant.providers.storage.local_object_store import LocalObjectStore

__all__ = ["HTTPObjectStore", "LocalObjectStore"]
