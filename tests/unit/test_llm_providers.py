"""Unit tests for model provider adapters -- Anthropic and OpenAI-compatible."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pm_assistant.config.settings import Settings
from pm_assistant.models.conversation import (
    ContentBlock,
    ConversationTurn,
    FunctionDefinition,
    ToolCall,
)
from pm_assistant.utils.errors import ModelError, ModelErrorKind


# ======================================================================
# Shared helpers
# ======================================================================

def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "",
        "openai_embedding_model": "",
        "anthropic_api_key": "test-anthropic",
        "anthropic_model": "claude-test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


_TOOLS = [
    FunctionDefinition(
        name="get_board_members",
        description="Board members",
        input_schema={"type": "object", "properties": {"communityId": {"type": "string"}}},
    )
]

_TOOL_ROUND = [
    ConversationTurn(role="user", content="Who is on the board?"),
    ConversationTurn(
        role="assistant",
        content=[
            ContentBlock(type="text", text="Let me check."),
            ContentBlock(
                type="tool_use",
                tool_call=ToolCall(call_id="call-1", name="get_board_members", arguments={"communityId": "c1"}),
            ),
        ],
    ),
    ConversationTurn(
        role="user",
        content=[ContentBlock(type="tool_result", tool_use_id="call-1", content='{"success": true}')],
    ),
]


# ======================================================================
# Anthropic
# ======================================================================


class TestAnthropicLLMProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider
        provider = AnthropicLLMProvider(settings)
        assert provider.get_provider_name() == "anthropic"
        assert provider.get_model_name() == "claude-test"

    def test_is_available_without_key(self) -> None:
        from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider
        provider = AnthropicLLMProvider(_settings(anthropic_api_key=""))
        assert provider.is_available() is False

    @pytest.mark.asyncio
    async def test_complete_success(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_response = SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"income": {}}')],
            usage=SimpleNamespace(input_tokens=50, output_tokens=10),
        )
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch("pm_assistant.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            provider = AnthropicLLMProvider(settings)
            result = await provider.complete("system", "user", temperature=0.0)

        assert result == '{"income": {}}'
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]

    @pytest.mark.asyncio
    async def test_complete_without_text_raises(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(
            return_value=SimpleNamespace(content=[], usage=SimpleNamespace(input_tokens=1, output_tokens=0))
        )

        with patch("pm_assistant.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            provider = AnthropicLLMProvider(settings)
            with pytest.raises(ModelError, match="no text"):
                await provider.complete("system", "user")

    @pytest.mark.asyncio
    async def test_converse_parses_tool_use(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Checking the board."),
                SimpleNamespace(
                    type="tool_use",
                    id="toolu_1",
                    name="get_board_members",
                    input={"communityId": "c1"},
                ),
            ],
            usage=SimpleNamespace(input_tokens=120, output_tokens=30),
            model="claude-test-20250101",
        )
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch("pm_assistant.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            provider = AnthropicLLMProvider(settings)
            turn = await provider.converse("system", _TOOL_ROUND[:1], _TOOLS)

        assert turn.wants_tools
        assert turn.tool_calls == [ToolCall(call_id="toolu_1", name="get_board_members", arguments={"communityId": "c1"})]
        assert turn.text == "Checking the board."
        assert turn.usage.input_tokens == 120
        assert turn.model == "claude-test-20250101"
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["tools"][0]["input_schema"]["type"] == "object"

    @pytest.mark.asyncio
    async def test_converse_sends_tool_round_as_blocks(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[SimpleNamespace(type="text", text="Ann Adams is treasurer.")],
                usage=SimpleNamespace(input_tokens=10, output_tokens=5),
                model="claude-test",
            )
        )

        with patch("pm_assistant.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            provider = AnthropicLLMProvider(settings)
            turn = await provider.converse("system", _TOOL_ROUND, [])

        assert not turn.wants_tools
        messages = mock_client.messages.create.call_args.kwargs["messages"]
        assert messages[1]["content"][1] == {
            "type": "tool_use",
            "id": "call-1",
            "name": "get_board_members",
            "input": {"communityId": "c1"},
        }
        assert messages[2]["content"][0]["type"] == "tool_result"
        assert messages[2]["content"][0]["tool_use_id"] == "call-1"
        assert "tools" not in mock_client.messages.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_api_error_is_classified(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider
        import anthropic

        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(
            side_effect=anthropic.APIError(message="Rate limit exceeded", request=MagicMock(), body=None)
        )

        with patch("pm_assistant.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            provider = AnthropicLLMProvider(settings)
            with pytest.raises(ModelError) as exc_info:
                await provider.converse("system", _TOOL_ROUND[:1], _TOOLS)

        assert exc_info.value.kind is ModelErrorKind.RATE_LIMIT
        assert exc_info.value.provider_name == "anthropic"


# ======================================================================
# OpenAI-compatible
# ======================================================================


class TestOpenAILLMProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_provider_label_and_default_model(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.openai_provider import OpenAILLMProvider
        provider = OpenAILLMProvider(settings)
        assert provider.get_provider_name() == "openai"
        assert provider.get_model_name() == "gpt-4o-mini"

    def test_compatible_endpoint_label(self) -> None:
        from pm_assistant.providers.llm.openai_provider import OpenAILLMProvider
        provider = OpenAILLMProvider(_settings(openai_base_url="http://localhost:1234/v1"))
        assert provider.get_provider_name() == "openai-compatible"

    @pytest.mark.asyncio
    async def test_complete_success(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.openai_provider import OpenAILLMProvider

        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content="LLM response text"))]
        mock_response.usage = MagicMock(total_tokens=100)

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch("pm_assistant.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            result = await provider.complete("system prompt", "user prompt")

        assert result == "LLM response text"

    @pytest.mark.asyncio
    async def test_complete_error(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.openai_provider import OpenAILLMProvider
        import openai

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.APIError(message="Invalid api key provided", request=MagicMock(), body=None)
        )

        with patch("pm_assistant.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            with pytest.raises(ModelError) as exc_info:
                await provider.complete("system", "user")

        assert exc_info.value.kind is ModelErrorKind.AUTH

    @pytest.mark.asyncio
    async def test_converse_parses_tool_calls(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.openai_provider import OpenAILLMProvider

        tool_call = SimpleNamespace(
            id="call_9",
            function=SimpleNamespace(name="get_invoices", arguments=json.dumps({"communityId": "c1", "limit": 3})),
        )
        broken_call = SimpleNamespace(
            id="call_10",
            function=SimpleNamespace(name="get_invoices", arguments="{not json"),
        )
        mock_response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None, tool_calls=[tool_call, broken_call]))],
            usage=SimpleNamespace(prompt_tokens=80, completion_tokens=12, total_tokens=92),
            model="gpt-4o-mini-2024",
        )
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch("pm_assistant.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            turn = await provider.converse("system", _TOOL_ROUND[:1], _TOOLS)

        assert [c.arguments for c in turn.tool_calls] == [{"communityId": "c1", "limit": 3}, {}]
        assert turn.text == ""
        assert turn.usage.input_tokens == 80
        assert turn.usage.output_tokens == 12
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["tools"][0]["function"]["parameters"]["type"] == "object"
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}

    @pytest.mark.asyncio
    async def test_converse_sends_tool_round_as_tool_messages(self, settings: Settings) -> None:
        from pm_assistant.providers.llm.openai_provider import OpenAILLMProvider

        mock_response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Ann Adams.", tool_calls=None))],
            usage=None,
            model=None,
        )
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch("pm_assistant.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(settings)
            turn = await provider.converse("system", _TOOL_ROUND, _TOOLS)

        assert turn.text == "Ann Adams."
        assert turn.model == "gpt-4o-mini"
        assert turn.usage.input_tokens == 0
        messages = mock_client.chat.completions.create.call_args.kwargs["messages"]
        assistant = messages[2]
        assert assistant["content"] == "Let me check."
        assert assistant["tool_calls"][0]["function"]["arguments"] == json.dumps({"communityId": "c1"})
        assert messages[3] == {"role": "tool", "tool_call_id": "call-1", "content": '{"success": true}'}
