"""Unit tests for the OpenAI-compatible embedding provider adapter."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pm_assistant.config.settings import Settings
from pm_assistant.utils.errors import EmbeddingError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _response(vectors: list[list[float]], indexes: list[int] | None = None) -> SimpleNamespace:
    indexes = indexes if indexes is not None else list(range(len(vectors)))
    return SimpleNamespace(
        data=[SimpleNamespace(index=i, embedding=v) for i, v in zip(indexes, vectors)],
        usage=SimpleNamespace(total_tokens=10),
    )


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        assert OpenAIEmbeddingProvider(settings).get_provider_name() == "openai_embedding"
        compatible = OpenAIEmbeddingProvider(_settings(openai_base_url="http://localhost:8080/v1"))
        assert compatible.get_provider_name() == "openai-compatible_embedding"

    def test_is_available_without_key(self) -> None:
        from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    def test_get_dimension(self, settings: Settings) -> None:
        from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        assert OpenAIEmbeddingProvider(settings).get_dimension() == 1536
        large = OpenAIEmbeddingProvider(_settings(openai_embedding_model="text-embedding-3-large"))
        assert large.get_dimension() == 3072

    @pytest.mark.asyncio
    async def test_embed_orders_by_index(self, settings: Settings) -> None:
        from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.2, 0.2], [0.1, 0.1]], indexes=[1, 0]))

        with patch(
            "pm_assistant.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed(["first", "second"])

        assert result == [[0.1, 0.1], [0.2, 0.2]]
        kwargs = mock_client.embeddings.create.call_args.kwargs
        assert kwargs["model"] == "text-embedding-3-small"
        assert kwargs["input"] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_embed_empty_makes_no_call(self, settings: Settings) -> None:
        from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        with patch(
            "pm_assistant.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            assert await provider.embed([]) == []

        mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_embed_single(self, settings: Settings) -> None:
        from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.5, 0.5, 0.5]]))

        with patch(
            "pm_assistant.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed_single("pool hours")

        assert result == [0.5, 0.5, 0.5]

    @pytest.mark.asyncio
    async def test_count_mismatch_raises(self, settings: Settings) -> None:
        from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=_response([[0.1]]))

        with patch(
            "pm_assistant.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingError, match="Expected 2 embeddings"):
                await provider.embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_embed_error(self, settings: Settings) -> None:
        from pm_assistant.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        import openai

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="Service unavailable", request=MagicMock(), body=None)
        )

        with patch(
            "pm_assistant.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingError) as exc_info:
                await provider.embed(["text"])

        assert exc_info.value.provider_name == "openai_embedding"
