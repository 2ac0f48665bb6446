"""OpenAI-compatible model provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.  When
``openai_base_url`` is configured the client points at that URL, so any
OpenAI-compatible chat endpoint with function calling works.

Turn translation for the chat.completions API:
    - tool_use blocks become ``tool_calls`` on an assistant message, with
      arguments JSON-encoded
    - each tool_result block becomes its own ``role="tool"`` message
"""

from __future__ import annotations

import json
from typing import Any

import openai
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


def _to_wire_messages(turn: ConversationTurn) -> list[dict[str, Any]]:
    if isinstance(turn.content, str):
        return [{"role": turn.role, "content": turn.content}]

    messages: list[dict[str, Any]] = []
    text = "\n".join(b.text or "" for b in turn.content if b.type == "text")
    tool_calls = [
        {
            "id": b.tool_call.call_id,
            "type": "function",
            "function": {"name": b.tool_call.name, "arguments": json.dumps(b.tool_call.arguments)},
        }
        for b in turn.content
        if b.type == "tool_use" and b.tool_call is not None
    ]
    if turn.role == "assistant":
        message: dict[str, Any] = {"role": "assistant", "content": text or None}
        if tool_calls:
            message["tool_calls"] = tool_calls
        messages.append(message)
    else:
        for b in turn.content:
            if b.type == "tool_result":
                messages.append({"role": "tool", "tool_call_id": b.tool_use_id, "content": b.content or ""})
        if text:
            messages.append({"role": "user", "content": text})
    return messages


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("openai_tool_arguments_unparseable", raw=raw[:200])
        return {}
    return parsed if isinstance(parsed, dict) else {}


class OpenAILLMProvider(ILLMProvider):
    """Model provider backed by an OpenAI-compatible API.

    Uses ``gpt-4o-mini`` unless ``OPENAI_TEXT_MODEL`` overrides it.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(settings.model_timeout_seconds, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

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
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            raise self._wrap(exc) from exc

        content = response.choices[0].message.content
        if content is None:
            raise ModelError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    async def converse(
        self,
        system_prompt: str,
        turns: list[ConversationTurn],
        tools: list[FunctionDefinition],
        max_tokens: int = 1024,
    ) -> ModelTurn:
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        for turn in turns:
            messages.extend(_to_wire_messages(turn))

        kwargs: dict[str, Any] = {
            "model": self._text_model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.input_schema,
                    },
                }
                for t in tools
            ]
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            raise self._wrap(exc) from exc

        message = response.choices[0].message
        calls = [
            ToolCall(
                call_id=call.id,
                name=call.function.name,
                arguments=_parse_arguments(call.function.arguments),
            )
            for call in (message.tool_calls or [])
        ]
        usage = TokenUsage(
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
        )
        logger.info(
            "openai_converse",
            model=self._text_model,
            provider=self._provider_label,
            tool_calls=len(calls),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return ModelTurn(
            text=message.content or "",
            tool_calls=calls,
            usage=usage,
            model=response.model or self._text_model,
        )

    def _wrap(self, exc: openai.APIError) -> ModelError:
        if isinstance(exc, openai.APITimeoutError):
            message = f"{self._provider_label} timed out after {self._settings.model_timeout_seconds}s"
        else:
            message = f"{self._provider_label} API error: {exc}"
        return ModelError(
            message=message,
            provider_name=self.get_provider_name(),
            kind=classify_model_failure(str(exc), getattr(exc, "status_code", None)),
        )

    def get_model_name(self) -> str:
        return self._text_model

    def is_available(self) -> bool:
        """Return ``True`` if an OpenAI API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return self._provider_label
