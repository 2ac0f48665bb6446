"""Anthropic model provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Messages API specifics:
    - The system prompt is a separate parameter, not a message in the list
    - Response content is a list of blocks (text and tool_use), so text
      blocks are joined and tool_use blocks become :class:`ToolCall` objects
    - Tool results go back as ``tool_result`` blocks inside a user turn
"""

from __future__ import annotations

from typing import Any

import anthropic
import structlog

from pm_assistant.config.settings import Settings
from pm_assistant.interfaces.llm_provider import ILLMProvider
from pm_assistant.models.conversation import (
    ConversationTurn,
    FunctionDefinition,
    ModelTurn,
    TokenUsage,
    ToolCall,
)
from pm_assistant.utils.errors import ModelError, classify_model_failure

logger = structlog.get_logger(logger_name=__name__)


def _to_wire_turn(turn: ConversationTurn) -> dict[str, Any]:
    if isinstance(turn.content, str):
        return {"role": turn.role, "content": turn.content}
    blocks: list[dict[str, Any]] = []
    for block in turn.content:
        if block.type == "text":
            blocks.append({"type": "text", "text": block.text or ""})
        elif block.type == "tool_use" and block.tool_call is not None:
            blocks.append(
                {
                    "type": "tool_use",
                    "id": block.tool_call.call_id,
                    "name": block.tool_call.name,
                    "input": block.tool_call.arguments,
                }
            )
        elif block.type == "tool_result":
            blocks.append(
                {
                    "type": "tool_result",
                    "tool_use_id": block.tool_use_id,
                    "content": block.content or "",
                }
            )
    return {"role": turn.role, "content": blocks}


class AnthropicLLMProvider(ILLMProvider):
    """Model provider backed by the Anthropic Claude API.

    The model comes from ``ANTHROPIC_MODEL``.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key,
            timeout=settings.model_timeout_seconds,
        )
        self._model = settings.anthropic_model

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            )
        except anthropic.APIError as exc:
            raise self._wrap(exc) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise ModelError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "\n".join(text_blocks)

    async def converse(
        self,
        system_prompt: str,
        turns: list[ConversationTurn],
        tools: list[FunctionDefinition],
        max_tokens: int = 1024,
    ) -> ModelTurn:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "system": system_prompt,
            "messages": [_to_wire_turn(t) for t in turns],
        }
        if tools:
            kwargs["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.input_schema}
                for t in tools
            ]
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise self._wrap(exc) from exc

        text_parts: list[str] = []
        calls: list[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolCall(call_id=block.id, name=block.name, arguments=dict(block.input or {})))

        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        logger.info(
            "anthropic_converse",
            model=self._model,
            tool_calls=len(calls),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return ModelTurn(
            text="\n".join(text_parts),
            tool_calls=calls,
            usage=usage,
            model=getattr(response, "model", None) or self._model,
        )

    def _wrap(self, exc: anthropic.APIError) -> ModelError:
        status = getattr(exc, "status_code", None)
        return ModelError(
            message=f"Anthropic API error: {exc}",
            provider_name=self.get_provider_name(),
            kind=classify_model_failure(str(exc), status),
        )

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        """Return ``True`` if an Anthropic API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
