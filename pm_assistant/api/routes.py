"""FastAPI routes for pm-assistant.

Thin controllers over the services stored on ``app.state`` by the
lifespan in ``main.py``, resolved through ``Annotated[..., Depends(...)]``.

Endpoint                          Method  Description
--------------------------------  ------  -----------------------------------
/api/v1/health                    GET     Health check + provider flags
/api/v1/status                    GET     Model / embedding availability
/api/v1/chat                      POST    Ask the assistant a question
/api/v1/index/pending             POST    Index every PDF needing work
/api/v1/index/reset-failed        POST    Flag failed documents for re-index
/api/v1/index/{document_id}       POST    Index one document
/api/v1/vector-stats              GET     Vector collection statistics
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from pm_assistant.api.schemas import (
    ChatRequest,
    HealthResponse,
    IndexPendingRequest,
    ResetFailedRequest,
    ResetFailedResponse,
    StatusResponse,
    VectorStatsResponse,
)
from pm_assistant.interfaces.embedding_provider import IEmbeddingProvider
from pm_assistant.interfaces.llm_provider import ILLMProvider
from pm_assistant.interfaces.vector_store_provider import IVectorStoreProvider
from pm_assistant.models.conversation import ChatOptions, ChatResult
from pm_assistant.models.documents import BulkIndexingReport, IndexingFilter, IndexingOutcome
from pm_assistant.services.conversation_service import ConversationService
from pm_assistant.services.indexing.indexing_service import DocumentIndexingService
from pm_assistant.utils.errors import DocumentNotFoundError
from pm_assistant.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependency injection helpers: resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_conversation_service(request: Request) -> ConversationService | None:
    return getattr(request.app.state, "conversation_service", None)


def _get_indexing_service(request: Request) -> DocumentIndexingService | None:
    return getattr(request.app.state, "indexing_service", None)


def _get_llm_provider(request: Request) -> ILLMProvider | None:
    return getattr(request.app.state, "llm_provider", None)


def _get_embedding_provider(request: Request) -> IEmbeddingProvider | None:
    return getattr(request.app.state, "embedding_provider", None)


def _get_vector_store(request: Request) -> IVectorStoreProvider | None:
    return getattr(request.app.state, "vector_store", None)


ConversationDep = Annotated[ConversationService | None, Depends(_get_conversation_service)]
IndexingDep = Annotated[DocumentIndexingService | None, Depends(_get_indexing_service)]
LLMDep = Annotated[ILLMProvider | None, Depends(_get_llm_provider)]
EmbeddingDep = Annotated[IEmbeddingProvider | None, Depends(_get_embedding_provider)]
VectorStoreDep = Annotated[IVectorStoreProvider | None, Depends(_get_vector_store)]


def _require_conversation(service: ConversationService | None) -> ConversationService:
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="Chat is not available: configure a model API key and OPENAI_API_KEY for embeddings",
        )
    return service


def _require_indexing(service: DocumentIndexingService | None) -> DocumentIndexingService:
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="Indexing is not available: OPENAI_API_KEY is required for embeddings",
        )
    return service


# ---------------------------------------------------------------------------
# Health and status
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(
    request: Request,
    llm: LLMDep,
    embedding: EmbeddingDep,
    vector_store: VectorStoreDep,
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=request.app.version,
        providers={
            "llm": llm is not None,
            "embedding": embedding is not None,
            "vector_store": vector_store is not None,
        },
    )


@router.get("/status", response_model=StatusResponse)
async def status(llm: LLMDep, embedding: EmbeddingDep, vector_store: VectorStoreDep) -> StatusResponse:
    return StatusResponse(
        model_available=llm is not None and llm.is_available(),
        model_provider=llm.get_provider_name() if llm else None,
        model_name=llm.get_model_name() if llm else None,
        embedding_available=embedding is not None and embedding.is_available(),
        embedding_provider=embedding.get_provider_name() if embedding else None,
        vector_store_available=vector_store is not None and vector_store.is_available(),
    )


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post("/chat", response_model=ChatResult)
async def chat(body: ChatRequest, service: ConversationDep) -> ChatResult:
    """Answer one question.  Model failures surface through the error middleware."""
    conversation = _require_conversation(service)
    _logger.info(
        "chat_request",
        message_length=len(body.message),
        history=len(body.history),
        community_id=body.community_id,
        use_rag=body.use_rag,
    )
    return await conversation.chat(
        body.message,
        history=[m.to_turn() for m in body.history],
        options=ChatOptions(community_id=body.community_id, use_rag=body.use_rag),
    )


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------


@router.post("/index/pending", response_model=BulkIndexingReport)
async def index_pending(service: IndexingDep, body: IndexPendingRequest | None = None) -> BulkIndexingReport:
    indexing = _require_indexing(service)
    body = body or IndexPendingRequest()
    return await indexing.index_all_pending(
        IndexingFilter(community_id=body.community_id, folder_type=body.folder_type),
    )


@router.post("/index/reset-failed", response_model=ResetFailedResponse)
async def reset_failed(service: IndexingDep, body: ResetFailedRequest | None = None) -> ResetFailedResponse:
    indexing = _require_indexing(service)
    community_id = body.community_id if body else None
    count = await indexing.reset_failed(community_id)
    _logger.info("failed_documents_reset", community_id=community_id, count=count)
    return ResetFailedResponse(reset_count=count)


@router.post("/index/{document_id}", response_model=IndexingOutcome)
async def index_document(document_id: str, service: IndexingDep) -> IndexingOutcome:
    indexing = _require_indexing(service)
    try:
        return await indexing.index_document(document_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc


# ---------------------------------------------------------------------------
# Vector store
# ---------------------------------------------------------------------------


@router.get("/vector-stats", response_model=VectorStatsResponse)
async def vector_stats(vector_store: VectorStoreDep) -> VectorStatsResponse:
    if vector_store is None:
        raise HTTPException(status_code=503, detail="Vector store not available")
    stats = await vector_store.get_stats()
    payload: dict[str, Any] = stats.model_dump()
    return VectorStatsResponse(provider=vector_store.get_provider_name(), **payload)
