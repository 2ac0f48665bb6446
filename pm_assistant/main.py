"""pm-assistant FastAPI application entry point.

Wires providers, repositories and services via constructor injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.  :func:`build_services` is shared with the CLI.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from pm_assistant.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from pm_assistant.api.routes import router as api_router
from pm_assistant.config.loader import load_config
from pm_assistant.config.settings import Settings
from pm_assistant.interfaces.embedding_provider import IEmbeddingProvider
from pm_assistant.interfaces.llm_provider import ILLMProvider
from pm_assistant.interfaces.object_store import IObjectStore
from pm_assistant.providers.cache.memory_cache import MemoryCacheProvider
from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider
from pm_assistant.providers.llm.openai_provider import OpenAILLMProvider
from pm_assistant.providers.sqlite.document_repository import SQLiteDocumentRepository
from pm_assistant.providers.sqlite.financial_repository import SQLiteFinancialRepository
from pm_assistant.providers.sqlite.operational_store import SQLiteOperationalStore
from pm_assistant.providers.storage.http_object_store import HTTPObjectStore
from pm_assistant.providers.storage.local_object_store import LocalObjectStore
from pm_assistant.providers.vector_store.chromadb_provider import ChromaDBProvider
from pm_assistant.services.community_resolver import CommunityResolver
from pm_assistant.services.conversation_service import ConversationService
from pm_assistant.services.data_functions.handlers import DataFunctionHandlers
from pm_assistant.services.data_functions.registry import FunctionRegistry
from pm_assistant.services.financial_extractor import FinancialStatementExtractor
from pm_assistant.services.indexing.chunker import TextChunker
from pm_assistant.services.indexing.indexing_service import DocumentIndexingService
from pm_assistant.services.indexing.pdf_extractor import PDFTextExtractor
from pm_assistant.services.retrieval_service import RetrievalService
from pm_assistant.utils.logging import configure_logging, get_logger

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider | None:
    """Select the first configured model provider.

    Priority order: Anthropic -> OpenAI.  Returns ``None`` when neither key
    is set; chat and statement extraction are then unavailable.
    """
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return None


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider | None:
    if not app_settings.openai_api_key:
        return None
    provider = OpenAIEmbeddingProvider(settings=app_settings)
    return provider if provider.is_available() else None


def _build_object_store(app_settings: Settings, http_client: httpx.AsyncClient) -> IObjectStore:
    if app_settings.document_storage_base_url:
        return HTTPObjectStore(http_client=http_client, base_url=app_settings.document_storage_base_url)
    return LocalObjectStore(root=app_settings.document_storage_root)


# ---------------------------------------------------------------------------
# Service graph
# ---------------------------------------------------------------------------


def build_services(app_settings: Settings, app_config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Construct every provider and service.

    Returns a flat dict of named components; the FastAPI lifespan stores
    them on ``app.state`` and the CLI uses them directly.  Components that
    need a missing API key are ``None``.

    Raises
    ------
    ConfigurationError
        If the function catalog and its handlers disagree.
    """
    app_config = app_config if app_config is not None else load_config(settings=app_settings)
    conversation_cfg = app_config.get("conversation", {})
    pricing = conversation_cfg.get("pricing", {})
    directory_cfg = app_config.get("community_directory", {})

    http_client = httpx.AsyncClient(timeout=app_settings.model_timeout_seconds)

    llm = _build_llm_provider(app_settings)
    embedding_provider = _build_embedding_provider(app_settings)
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )

    document_repository = SQLiteDocumentRepository(db_path=app_settings.database_path)
    financial_repository = SQLiteFinancialRepository(db_path=app_settings.database_path)
    operational_store = SQLiteOperationalStore(db_path=app_settings.database_path)

    cache = MemoryCacheProvider(ttl=int(directory_cfg.get("cache_ttl_seconds", 300)))
    resolver = CommunityResolver(store=operational_store, cache=cache)

    registry = FunctionRegistry(
        handlers=DataFunctionHandlers(store=operational_store, financials=financial_repository),
    )
    registry.validate()

    financial_extractor = None
    if llm is not None:
        financial_extractor = FinancialStatementExtractor(llm_provider=llm, repository=financial_repository)

    retrieval_service = None
    indexing_service = None
    if embedding_provider is not None:
        retrieval_service = RetrievalService(embedding_provider=embedding_provider, vector_store=vector_store)
        indexing_service = DocumentIndexingService(
            documents=document_repository,
            object_store=_build_object_store(app_settings, http_client),
            extractor=PDFTextExtractor(),
            chunker=TextChunker(chunk_size=app_settings.chunk_size, overlap=app_settings.chunk_overlap),
            embedding_provider=embedding_provider,
            vector_store=vector_store,
            financial_extractor=financial_extractor,
            batch_size=app_settings.indexing_batch_size,
        )
    else:
        _logger.warning("embedding_provider_missing", msg="OPENAI_API_KEY not set; indexing and retrieval disabled")

    conversation_service = None
    if llm is not None and retrieval_service is not None:
        conversation_service = ConversationService(
            llm_provider=llm,
            resolver=resolver,
            retrieval=retrieval_service,
            registry=registry,
            max_iterations=int(conversation_cfg.get("max_iterations", 5)),
            max_tokens=int(conversation_cfg.get("max_tokens", 1024)),
            retrieval_limit=int(conversation_cfg.get("retrieval_limit", 5)),
            input_cost_per_million=float(pricing.get("input_per_million", 3.0)),
            output_cost_per_million=float(pricing.get("output_per_million", 15.0)),
        )
    elif llm is None:
        _logger.warning("llm_provider_missing", msg="No model API key set; chat disabled")

    return {
        "http_client": http_client,
        "llm_provider": llm,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "document_repository": document_repository,
        "financial_repository": financial_repository,
        "operational_store": operational_store,
        "community_resolver": resolver,
        "function_registry": registry,
        "retrieval_service": retrieval_service,
        "indexing_service": indexing_service,
        "conversation_service": conversation_service,
    }


async def initialize_stores(components: dict[str, Any]) -> None:
    """Create the SQLite tables the services rely on."""
    await components["document_repository"].initialize()
    await components["financial_repository"].initialize()
    await components["operational_store"].initialize()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise providers and services on startup, clean up on shutdown."""
    components = build_services(settings, config)
    for key, value in components.items():
        setattr(application.state, key, value)
    await initialize_stores(components)

    llm = components["llm_provider"]
    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        llm_provider=llm.get_provider_name() if llm else None,
        embedding_enabled=components["embedding_provider"] is not None,
    )

    yield

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="pm-assistant API",
        version=__version__,
        description=(
            "Index community documents and answer property-management questions "
            "with retrieval and read-only database functions."
        ),
        lifespan=_lifespan,
    )

    # Last added runs first.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "pm_assistant.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
