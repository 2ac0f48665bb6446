"""Vector store provider adapters."""

from pm_assistant.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
