"""Pydantic request/response schemas for the pm-assistant API.

Request schemas end with ``Request`` and response schemas with
``Response``.  Chat and indexing results reuse the domain models
(:class:`~pm_assistant.models.conversation.ChatResult`,
:class:`~pm_assistant.models.documents.BulkIndexingReport`) directly.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from pm_assistant.models.conversation import ConversationTurn


class HistoryMessage(BaseModel):
    """One prior message of the conversation as sent by the client."""

    role: str
    content: str

    def to_turn(self) -> ConversationTurn:
        role: Literal["user", "assistant"] = "user" if self.role == "user" else "assistant"
        return ConversationTurn(role=role, content=self.content)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    history: list[HistoryMessage] = Field(default_factory=list)
    community_id: str | None = None
    use_rag: bool = True


class IndexPendingRequest(BaseModel):
    """Optional narrowing of a bulk indexing run."""

    community_id: str | None = None
    folder_type: str | None = None


class ResetFailedRequest(BaseModel):
    community_id: str | None = None


class ResetFailedResponse(BaseModel):
    reset_count: int


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class StatusResponse(BaseModel):
    """Availability of the model and embedding providers."""

    model_available: bool
    model_provider: str | None = None
    model_name: str | None = None
    embedding_available: bool
    embedding_provider: str | None = None
    vector_store_available: bool


class VectorStatsResponse(BaseModel):
    provider: str
    collection_name: str
    total_records: int = 0
    persist_directory: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
