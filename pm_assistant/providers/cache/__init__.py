"""Cache provider adapters."""

from pm_assistant.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
