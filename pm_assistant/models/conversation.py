"""Conversation models for one chat invocation.

Turns follow the content-block layout used by tool-calling chat APIs: a
turn's ``content`` is either plain text or a list of blocks (``text``,
``tool_use`` and ``tool_result``).  Providers translate to and from their
own wire format.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ConversationPhase(str, Enum):  # noqa: UP042
    """States of the tool-calling loop."""

    COMPOSING = "composing"
    AWAITING_MODEL = "awaiting_model"
    TOOLS_REQUESTED = "tools_requested"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"


class ToolCall(BaseModel):
    """A function call requested by the model."""

    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ContentBlock(BaseModel):
    """One block of a structured turn."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text", "tool_use", "tool_result"]
    text: str | None = None
    tool_call: ToolCall | None = None
    tool_use_id: str | None = None
    content: str | None = None


class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0


class ModelTurn(BaseModel):
    """One model response: text, requested calls and token usage."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = ""

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class FunctionDefinition(BaseModel):
    """A function published to the model: name, description, JSON schema."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: dict[str, Any]


class FunctionCallRecord(BaseModel):
    """Provenance entry for a function used while answering."""

    model_config = ConfigDict(frozen=True)

    name: str
    community_id: str | None = None


class ChatOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    community_id: str | None = None
    use_rag: bool = True


class SourceDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    display_name: str | None = None
    document_id: str | None = None
    folder_type: str = "Community"
    community_id: str | None = None


class ChatSources(BaseModel):
    documents: list[SourceDocument] = Field(default_factory=list)
    database_functions: list[FunctionCallRecord] = Field(default_factory=list)


class CostBreakdown(BaseModel):
    input: float = 0.0
    output: float = 0.0
    total: float = 0.0


class ChatUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: CostBreakdown = Field(default_factory=CostBreakdown)
    iterations: int = 0


class ChatResult(BaseModel):
    """Final answer with provenance and usage."""

    response: str
    model: str
    sources: ChatSources = Field(default_factory=ChatSources)
    usage: ChatUsage = Field(default_factory=ChatUsage)
