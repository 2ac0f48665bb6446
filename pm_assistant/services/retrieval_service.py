"""Scoped semantic retrieval over indexed documents.

Every query is embedded once and searched within a
:class:`~pm_assistant.models.rag.RetrievalScope`:

* **community** -- server-side ``community_id`` filter, then an equality
  post-filter so a misconfigured store can never leak another community's
  records;
* **shared** -- shared ("Corporate") documents carry no community id, which
  the store cannot filter on, so ``2 x limit`` hits are fetched unfiltered
  and post-filtered;
* **folder type** -- server-side ``folder_type`` filter;
* **unscoped** -- plain nearest-neighbour search.

The service also renders hits as the supporting-documents block of the
conversation prompt.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from pm_assistant.interfaces.embedding_provider import IEmbeddingProvider
from pm_assistant.interfaces.vector_store_provider import IVectorStoreProvider
from pm_assistant.models.documents import DocumentScope
from pm_assistant.models.rag import (
    DocumentSource,
    RetrievalScope,
    RetrievedDocument,
    ScopeKind,
    ScoredRecord,
)

logger = structlog.get_logger(logger_name=__name__)

_SHARED_FOLDER_TYPE = DocumentScope.SHARED.value
_SHARED_OVERFETCH = 2

DOCUMENT_KEYWORDS: tuple[str, ...] = (
    "document",
    "pdf",
    "file",
    "contract",
    "agreement",
    "policy",
    "rule",
    "regulation",
    "bylaw",
    "ccr",
    "governing document",
    "what does",
    "what says",
    "according to",
    "states that",
    "mentions",
    "references",
    "says about",
)

_CONTEXT_HEADER = "\n\n--- RELEVANT DOCUMENTS (SUPPORTING/SECONDARY SOURCE) ---\n\n"
_CONTEXT_NOTE = (
    "NOTE: These documents provide supporting context only. When they conflict "
    "with database function results, the database results are authoritative.\n\n"
)


def _source_from_metadata(metadata: dict[str, Any]) -> DocumentSource:
    page = metadata.get("page_number")
    sequence = metadata.get("sequence_index")
    return DocumentSource(
        document_id=metadata.get("document_id"),
        display_name=metadata.get("display_name"),
        folder_name=metadata.get("folder_name"),
        community_id=metadata.get("community_id"),
        folder_type=metadata.get("folder_type"),
        page_number=int(page) if page is not None else None,
        sequence_index=int(sequence) if sequence is not None else None,
        created_at=metadata.get("created_at"),
    )


def _to_document(hit: ScoredRecord) -> RetrievedDocument:
    return RetrievedDocument(text=hit.text, score=hit.score, source=_source_from_metadata(hit.metadata))


class RetrievalService:
    """Embeds queries and searches the vector store within a scope."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store

    async def retrieve(
        self,
        query: str,
        scope: RetrievalScope | None = None,
        limit: int = 5,
    ) -> list[RetrievedDocument]:
        """Return up to *limit* documents for *query* within *scope*.

        Raises
        ------
        EmbeddingError, StoreError
            Propagated from the providers; callers decide whether to
            continue without documents.
        """
        scope = scope or RetrievalScope.unscoped()
        vector = await self._embedding_provider.embed_single(query)
        results = await self._search(vector, scope, limit)
        logger.info(
            "retrieval_complete",
            scope=scope.kind.value,
            community_id=scope.community_id,
            folder_type=scope.folder_type,
            results=len(results),
        )
        return results

    async def retrieve_many(
        self,
        query: str,
        scopes: list[RetrievalScope],
        limit: int = 5,
    ) -> list[RetrievedDocument]:
        """Search several scopes concurrently and merge the hits.

        Hits are deduplicated by document id keeping the best-scoring
        chunk, sorted by score and truncated to *limit*.
        """
        if not scopes:
            return []
        vector = await self._embedding_provider.embed_single(query)
        batches = await asyncio.gather(*(self._search(vector, s, limit) for s in scopes))

        best: dict[str, RetrievedDocument] = {}
        for doc in (d for batch in batches for d in batch):
            key = doc.source.document_id or doc.text
            if key not in best or doc.score > best[key].score:
                best[key] = doc
        merged = sorted(best.values(), key=lambda d: d.score, reverse=True)[:limit]
        logger.info("retrieval_merged", scopes=len(scopes), results=len(merged))
        return merged

    @staticmethod
    def is_document_query(text: str) -> bool:
        """Return ``True`` if *text* refers to documents rather than records."""
        lowered = (text or "").lower()
        return any(keyword in lowered for keyword in DOCUMENT_KEYWORDS)

    @staticmethod
    def format_documents_as_context(documents: list[RetrievedDocument]) -> str:
        """Render *documents* as the supporting-documents prompt block."""
        if not documents:
            return ""

        parts = [_CONTEXT_HEADER, _CONTEXT_NOTE]
        for index, doc in enumerate(documents, start=1):
            source = doc.source
            name = source.display_name or "Unknown document"
            folder = source.folder_name or source.folder_type or "Unfiled"
            created = (source.created_at or "")[:10] or "Unknown"
            page = source.page_number if source.page_number is not None else "N/A"
            parts.append(
                f"[Document {index}]\n"
                f"Source: {name} ({folder}) | Created: {created} | Page {page}\n"
                f"Relevance: {doc.score * 100:.1f}%\n\n"
                f"{doc.text}\n\n---\n\n"
            )
        return "".join(parts)

    # ------------------------------------------------------------------
    # Scoped search
    # ------------------------------------------------------------------

    async def _search(
        self,
        vector: list[float],
        scope: RetrievalScope,
        limit: int,
    ) -> list[RetrievedDocument]:
        if scope.kind is ScopeKind.SHARED:
            hits = await self._vector_store.similarity_search(vector, limit * _SHARED_OVERFETCH)
            hits = [
                h
                for h in hits
                if not h.metadata.get("community_id") and h.metadata.get("folder_type") == _SHARED_FOLDER_TYPE
            ]
            return [_to_document(h) for h in hits[:limit]]

        if scope.kind is ScopeKind.COMMUNITY:
            hits = await self._vector_store.similarity_search(
                vector,
                limit,
                {"community_id": scope.community_id},
            )
            return [_to_document(h) for h in hits if h.metadata.get("community_id") == scope.community_id]

        if scope.kind is ScopeKind.FOLDER_TYPE:
            hits = await self._vector_store.similarity_search(vector, limit, {"folder_type": scope.folder_type})
            return [_to_document(h) for h in hits]

        hits = await self._vector_store.similarity_search(vector, limit)
        return [_to_document(h) for h in hits]
