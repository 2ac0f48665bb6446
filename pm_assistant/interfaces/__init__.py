"""Public interface definitions for all external collaborators.

Every external service is reached through the abstract base classes in this
package; concrete adapters live in ``pm_assistant/providers/`` and are wired
together in ``pm_assistant/main.py``.  Unit tests inject mocks instead.

    Interface                      ->  Concrete implementations
    ----------------------------------------------------------------
    ILLMProvider                   ->  AnthropicLLMProvider, OpenAILLMProvider
    IEmbeddingProvider             ->  OpenAIEmbeddingProvider
    IVectorStoreProvider           ->  ChromaDBProvider
    ICacheProvider                 ->  MemoryCacheProvider
    IObjectStore                   ->  LocalObjectStore, HTTPObjectStore
    IDocumentRepository            ->  SQLiteDocumentRepository
    IFinancialSnapshotRepository   ->  SQLiteFinancialRepository
    IOperationalStore              ->  SQLiteOperationalStore
"""

from pm_assistant.interfaces.cache_provider import ICacheProvider
from pm_assistant.interfaces.document_repository import IDocumentRepository
from pm_assistant.interfaces.embedding_provider import IEmbeddingProvider
from pm_assistant.interfaces.financial_repository import IFinancialSnapshotRepository
from pm_assistant.interfaces.llm_provider import ILLMProvider
from pm_assistant.interfaces.object_store import IObjectStore
from pm_assistant.interfaces.operational_store import IOperationalStore
from pm_assistant.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ICacheProvider",
    "IDocumentRepository",
    "IEmbeddingProvider",
    "IFinancialSnapshotRepository",
    "ILLMProvider",
    "IObjectStore",
    "IOperationalStore",
    "IVectorStoreProvider",
]
