"""Unit tests for RetrievalService scoping, post-filters and context rendering."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pm_assistant.models.rag import DocumentSource, RetrievalScope, RetrievedDocument, ScopeKind, ScoredRecord
from pm_assistant.services.retrieval_service import RetrievalService
from pm_assistant.utils.errors import EmbeddingError


def _hit(record_id: str, score: float, **metadata: Any) -> ScoredRecord:
    return ScoredRecord(record_id=record_id, text=f"text of {record_id}", score=score, metadata=metadata)


class TestScopes:
    @pytest.mark.asyncio
    async def test_community_scope_filters_and_post_filters(
        self, mock_embedding_provider: MagicMock, mock_vector_store: MagicMock
    ) -> None:
        mock_vector_store.similarity_search = AsyncMock(
            return_value=[
                _hit("a-chunk-0", 0.9, document_id="a", community_id="c1", folder_type="Community"),
                _hit("b-chunk-0", 0.8, document_id="b", community_id="c2", folder_type="Community"),
            ]
        )
        service = RetrievalService(mock_embedding_provider, mock_vector_store)

        results = await service.retrieve("pool hours", RetrievalScope.community("c1"), limit=5)

        mock_vector_store.similarity_search.assert_awaited_once_with([0.1] * 8, 5, {"community_id": "c1"})
        assert [r.source.document_id for r in results] == ["a"]
        assert results[0].source.community_id == "c1"

    @pytest.mark.asyncio
    async def test_shared_scope_overfetches_and_post_filters(
        self, mock_embedding_provider: MagicMock, mock_vector_store: MagicMock
    ) -> None:
        mock_vector_store.similarity_search = AsyncMock(
            return_value=[
                _hit("p1-chunk-0", 0.95, document_id="p1", folder_type="Corporate"),
                _hit("c-chunk-0", 0.9, document_id="c", community_id="c1", folder_type="Community"),
                _hit("p2-chunk-0", 0.85, document_id="p2", folder_type="Corporate"),
                _hit("p3-chunk-0", 0.8, document_id="p3", folder_type="Corporate"),
            ]
        )
        service = RetrievalService(mock_embedding_provider, mock_vector_store)

        results = await service.retrieve("vendor insurance policy", RetrievalScope.shared(), limit=2)

        mock_vector_store.similarity_search.assert_awaited_once_with([0.1] * 8, 4)
        assert [r.source.document_id for r in results] == ["p1", "p2"]
        assert all(r.source.community_id is None for r in results)

    @pytest.mark.asyncio
    async def test_folder_type_scope(self, mock_embedding_provider: MagicMock, mock_vector_store: MagicMock) -> None:
        service = RetrievalService(mock_embedding_provider, mock_vector_store)

        await service.retrieve("rules", RetrievalScope.for_folder_type("Community"), limit=3)

        mock_vector_store.similarity_search.assert_awaited_once_with([0.1] * 8, 3, {"folder_type": "Community"})

    def test_corporate_folder_type_means_shared(self) -> None:
        assert RetrievalScope.for_folder_type("Corporate").kind is ScopeKind.SHARED

    @pytest.mark.asyncio
    async def test_unscoped(self, mock_embedding_provider: MagicMock, mock_vector_store: MagicMock) -> None:
        service = RetrievalService(mock_embedding_provider, mock_vector_store)
        await service.retrieve("anything")
        mock_vector_store.similarity_search.assert_awaited_once_with([0.1] * 8, 5)

    @pytest.mark.asyncio
    async def test_metadata_mapping(self, mock_embedding_provider: MagicMock, mock_vector_store: MagicMock) -> None:
        mock_vector_store.similarity_search = AsyncMock(
            return_value=[
                _hit(
                    "a-chunk-2",
                    0.7,
                    document_id="a",
                    display_name="Bylaws.pdf",
                    folder_name="Governing",
                    community_id="c1",
                    folder_type="Community",
                    page_number=3,
                    sequence_index=2,
                    created_at="2024-02-01T00:00:00",
                )
            ]
        )
        service = RetrievalService(mock_embedding_provider, mock_vector_store)

        [doc] = await service.retrieve("quorum", RetrievalScope.community("c1"))

        assert doc.source.display_name == "Bylaws.pdf"
        assert doc.source.page_number == 3
        assert doc.source.sequence_index == 2
        assert doc.score == 0.7

    @pytest.mark.asyncio
    async def test_embedding_errors_propagate(
        self, mock_embedding_provider: MagicMock, mock_vector_store: MagicMock
    ) -> None:
        mock_embedding_provider.embed_single = AsyncMock(side_effect=EmbeddingError(message="down"))
        service = RetrievalService(mock_embedding_provider, mock_vector_store)

        with pytest.raises(EmbeddingError):
            await service.retrieve("anything")


class TestRetrieveMany:
    @pytest.mark.asyncio
    async def test_merges_and_keeps_best_chunk_per_document(
        self, mock_embedding_provider: MagicMock, mock_vector_store: MagicMock
    ) -> None:
        mock_vector_store.similarity_search = AsyncMock(
            side_effect=[
                [
                    _hit("a-chunk-0", 0.6, document_id="a", community_id="c1"),
                    _hit("b-chunk-0", 0.5, document_id="b", community_id="c1"),
                ],
                [
                    _hit("a-chunk-3", 0.9, document_id="a", folder_type="Community"),
                    _hit("d-chunk-0", 0.4, document_id="d", folder_type="Community"),
                ],
            ]
        )
        service = RetrievalService(mock_embedding_provider, mock_vector_store)

        results = await service.retrieve_many(
            "fees",
            [RetrievalScope.community("c1"), RetrievalScope.for_folder_type("Community")],
            limit=2,
        )

        assert [(r.source.document_id, r.score) for r in results] == [("a", 0.9), ("b", 0.5)]
        mock_embedding_provider.embed_single.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_scopes(self, mock_embedding_provider: MagicMock, mock_vector_store: MagicMock) -> None:
        service = RetrievalService(mock_embedding_provider, mock_vector_store)
        assert await service.retrieve_many("fees", []) == []


class TestHelpers:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("What do the bylaws say about pets?", True),
            ("Show me the management agreement", True),
            ("According to the CC&Rs, can I paint my door?", True),
            ("What are the management fees for Lakeside?", False),
            ("", False),
        ],
    )
    def test_is_document_query(self, text: str, expected: bool) -> None:
        assert RetrievalService.is_document_query(text) is expected

    def test_format_documents_as_context(self) -> None:
        docs = [
            RetrievedDocument(
                text="Quorum is 20% of members.",
                score=0.875,
                source=DocumentSource(
                    document_id="a",
                    display_name="Bylaws.pdf",
                    folder_name="Governing",
                    page_number=4,
                    created_at="2024-02-01T10:00:00",
                ),
            ),
            RetrievedDocument(text="Pool opens at 8.", score=0.5, source=DocumentSource()),
        ]

        context = RetrievalService.format_documents_as_context(docs)

        assert "RELEVANT DOCUMENTS" in context
        assert "[Document 1]" in context
        assert "Source: Bylaws.pdf (Governing) | Created: 2024-02-01 | Page 4" in context
        assert "Relevance: 87.5%" in context
        assert "[Document 2]" in context
        assert "Source: Unknown document (Unfiled) | Created: Unknown | Page N/A" in context

    def test_format_empty(self) -> None:
        assert RetrievalService.format_documents_as_context([]) == ""
