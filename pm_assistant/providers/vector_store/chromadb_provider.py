"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Uses cosine distance; fully local, no external service required.
"""

from __future__ import annotations

import os
from typing import Any, Callable

# ChromaDB's bundled PostHog client clashes with newer posthog releases, so
# telemetry is switched off three ways: env var, the SDK flag, and the
# client Settings below.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from pm_assistant.interfaces.vector_store_provider import IVectorStoreProvider
from pm_assistant.models.rag import ScoredRecord, VectorRecord, VectorStoreStats
from pm_assistant.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_UPSERT_BATCH_SIZE = 500


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    Every record and query arrives with a pre-computed vector; passing this
    keeps ChromaDB from loading its default ONNX model.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "pm-assistant supplies pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


def _clean_metadata(metadata: dict[str, Any]) -> dict[str, str | int | float | bool]:
    """Keep only the scalar values ChromaDB accepts; drop ``None``."""
    cleaned: dict[str, str | int | float | bool] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            cleaned[key] = value
        else:
            cleaned[key] = str(value)
    return cleaned


def _translate_filter(metadata_filter: dict[str, Any] | None) -> dict[str, Any] | None:
    """Turn ``{field: value}`` pairs into a ChromaDB ``where`` clause."""
    if not metadata_filter:
        return None
    clauses = [{key: {"$eq": value}} for key, value in metadata_filter.items() if value is not None]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "pm_documents",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by an older ChromaDB with the default embedding
        # function reject a different one with ValueError; reopen without it.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert_batch(self, records: list[VectorRecord]) -> int:
        """Upsert records in slices of 500 to bound peak memory."""
        if not records:
            return 0
        try:
            total = 0
            for start in range(0, len(records), _UPSERT_BATCH_SIZE):
                batch = records[start : start + _UPSERT_BATCH_SIZE]
                self._collection.upsert(
                    ids=[r.record_id for r in batch],
                    embeddings=[r.embedding for r in batch],
                    documents=[r.text for r in batch],
                    metadatas=[_clean_metadata(r.metadata) for r in batch],
                )
                total += len(batch)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_upsert",
            count=total,
            batches=(len(records) + _UPSERT_BATCH_SIZE - 1) // _UPSERT_BATCH_SIZE,
        )
        return total

    async def similarity_search(
        self,
        vector: list[float],
        limit: int = 5,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[ScoredRecord]:
        if limit <= 0:
            return []
        try:
            total = self._collection.count()
            if total == 0:
                return []
            kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": min(limit, total),
                "include": ["documents", "metadatas", "distances"],
            }
            where = _translate_filter(metadata_filter)
            if where:
                kwargs["where"] = where
            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)

        hits = [
            ScoredRecord(
                record_id=record_id,
                text=text or "",
                score=max(0.0, min(1.0, 1.0 - distance)),
                metadata=dict(meta or {}),
            )
            for record_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True)
        ]
        hits.sort(key=lambda h: h.score, reverse=True)

        logger.info(
            "chromadb_query",
            filter=metadata_filter,
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def delete_by_document_id(self, document_id: str, keep_version: int | None = None) -> int:
        count = self._delete_where(
            document_id,
            lambda meta: keep_version is None or meta.get("indexing_version") != keep_version,
        )
        logger.info(
            "chromadb_delete_by_document",
            document_id=document_id,
            keep_version=keep_version,
            deleted_count=count,
        )
        return count

    async def delete_version(self, document_id: str, version: int) -> int:
        count = self._delete_where(document_id, lambda meta: meta.get("indexing_version") == version)
        logger.info("chromadb_delete_version", document_id=document_id, version=version, deleted_count=count)
        return count

    async def count(self) -> int:
        try:
            return self._collection.count()
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_stats(self) -> VectorStoreStats:
        return VectorStoreStats(
            collection_name=self._collection_name,
            total_records=await self.count(),
            persist_directory=self._persist_directory,
        )

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        try:
            self._collection.count()
            return True
        except Exception:  # noqa: BLE001
            return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _delete_where(self, document_id: str, select: Callable[[dict[str, Any]], bool]) -> int:
        """Delete the document's records whose metadata passes *select*."""
        try:
            existing = self._collection.get(where={"document_id": document_id}, include=["metadatas"])
            ids = existing["ids"] or []
            metadatas = existing.get("metadatas") or [{}] * len(ids)
            doomed = [
                record_id
                for record_id, meta in zip(ids, metadatas, strict=True)
                if select(dict(meta or {}))
            ]
            if doomed:
                self._collection.delete(ids=doomed)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(doomed)
