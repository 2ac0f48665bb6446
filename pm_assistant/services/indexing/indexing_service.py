"""Orchestrator for the document indexing pipeline.

Pipeline stages: **read -> hash -> extract -> claim -> chunk -> embed -> store -> commit**,
plus an optional financial side-pipeline for monthly statements.

:class:`DocumentIndexingService` coordinates the object store, PDF
extractor, chunker, embedding provider, vector store and document
repository without any of them knowing about each other.  All
collaborators are injected, so tests substitute mocks.

Per-document state machine::

    Unindexed --> Indexing --> Indexed | Failed
    Indexed   --> Indexing   (content hash changed, or force_reindex)
    Failed    --> Indexing   (force_reindex only)

Each run claims the next ``indexing_version`` before its first vector
write and tags its records with it.  The previous set is deleted only after
the commit succeeds; a run that loses the commit removes its own records.
A crash between upsert and cleanup can leave two sets briefly; the next
successful run of the document removes the stray one.
"""

from __future__ import annotations

import asyncio
import hashlib
import warnings
from collections import defaultdict
from datetime import datetime
from typing import Any

import structlog

from pm_assistant.interfaces.document_repository import IDocumentRepository
from pm_assistant.interfaces.embedding_provider import IEmbeddingProvider
from pm_assistant.interfaces.object_store import IObjectStore
from pm_assistant.interfaces.vector_store_provider import IVectorStoreProvider
from pm_assistant.models.documents import (
    PDF_CONTENT_TYPE,
    BulkIndexingReport,
    Document,
    DocumentError,
    IndexingDetails,
    IndexingFilter,
    IndexingOutcome,
    IndexStatus,
    ProcessedDocument,
    SkippedDocument,
)
from pm_assistant.models.rag import Chunk, ExtractedDocument, VectorRecord
from pm_assistant.services.financial_extractor import FinancialStatementExtractor
from pm_assistant.services.indexing.chunker import TextChunker
from pm_assistant.services.indexing.pdf_extractor import PDFTextExtractor
from pm_assistant.utils.concurrency import batched, throttled_gather
from pm_assistant.utils.errors import (
    DocumentNotFoundError,
    EmptyTextWarning,
    IndexingConflictError,
    PMAssistantError,
)

logger = structlog.get_logger(logger_name=__name__)

_MAX_ERROR_LENGTH = 4000
SKIP_NOT_PDF = "Not a PDF file"
SKIP_PREVIOUS_ERROR = "Previous indexing error"
SKIP_UNCHANGED = "Document unchanged since last indexing"


def _image_only_reason(page_count: int) -> str:
    return f"Image-based PDF detected ({page_count} pages) - OCR required for text extraction"


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest used for change detection."""
    return hashlib.sha256(data).hexdigest()


class DocumentIndexingService:
    """Indexes documents into the vector store and tracks their state.

    Parameters
    ----------
    documents:
        Document metadata and indexing state.
    object_store:
        Source of document bytes.
    extractor:
        PDF text extractor.
    chunker:
        Splits extracted text into overlapping windows.
    embedding_provider:
        Embeds chunk text.
    vector_store:
        Holds one record per chunk.
    financial_extractor:
        Optional; when present, statements belonging to a community are
        turned into monthly snapshots.
    batch_size:
        Number of documents processed concurrently by
        :meth:`index_all_pending`.
    """

    def __init__(
        self,
        documents: IDocumentRepository,
        object_store: IObjectStore,
        extractor: PDFTextExtractor,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        financial_extractor: FinancialStatementExtractor | None = None,
        batch_size: int = 5,
    ) -> None:
        self._documents = documents
        self._object_store = object_store
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._financial_extractor = financial_extractor
        self._batch_size = batch_size
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def index_document(self, ref: str | Document) -> IndexingOutcome:
        """Index one document by id or instance.

        Returns
        -------
        IndexingOutcome
            ``success`` or ``skipped`` (with a reason, and the stale error
            when the skip is due to a previous failure).

        Raises
        ------
        DocumentNotFoundError
            If *ref* is an unknown id.
        PMAssistantError
            Any pipeline failure, after the document is marked failed.
            :class:`IndexingConflictError` leaves the stored state alone.
        """
        document_id = ref.document_id if isinstance(ref, Document) else ref

        async with self._locks[document_id]:
            # Re-read inside the lock so the CAS uses the latest version.
            document = await self._documents.get_document(document_id)
            if document is None:
                if isinstance(ref, Document):
                    document = ref
                else:
                    raise DocumentNotFoundError(message=f"Document {document_id} not found")

            try:
                return await self._run(document)
            except IndexingConflictError:
                logger.warning("document_index_conflict", document_id=document_id)
                raise
            except Exception as exc:
                message = exc.message if isinstance(exc, PMAssistantError) else str(exc)
                await self._documents.mark_failed(document_id, message[:_MAX_ERROR_LENGTH])
                logger.error(
                    "document_index_failed",
                    document_id=document_id,
                    display_name=document.display_name,
                    error=str(exc),
                )
                raise

    async def index_all_pending(self, filter: IndexingFilter | None = None) -> BulkIndexingReport:
        """Index every PDF that needs work, in fixed-width concurrent batches.

        A document needs work when it is unindexed, flagged for
        re-indexing, or is an indexed community statement whose period has
        no snapshot yet.  One document's failure never aborts the run.
        """
        filter = filter or IndexingFilter()
        candidates = await self._documents.list_documents(
            content_type=PDF_CONTENT_TYPE,
            community_id=filter.community_id,
            folder_type=filter.folder_type,
        )
        pending = [d for d in candidates if await self._needs_work(d)]

        report = BulkIndexingReport(total=len(pending))
        logger.info(
            "bulk_indexing_started",
            total=len(pending),
            candidates=len(candidates),
            community_id=filter.community_id,
            folder_type=filter.folder_type.value if filter.folder_type else None,
        )

        for batch_number, batch in enumerate(batched(pending, self._batch_size), start=1):
            results = await throttled_gather([self.index_document(d) for d in batch])
            for document, result in zip(batch, results, strict=True):
                self._record(report, document, result)
            logger.info(
                "bulk_indexing_batch_complete",
                batch=batch_number,
                size=len(batch),
                successful=report.successful,
                failed=report.failed,
                skipped=report.skipped,
            )

        logger.info(
            "bulk_indexing_complete",
            total=report.total,
            successful=report.successful,
            failed=report.failed,
            skipped=report.skipped,
        )
        return report

    async def reset_failed(self, community_id: str | None = None) -> int:
        """Flag every failed document for re-indexing on the next run."""
        return await self._documents.reset_failed(community_id)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(self, document: Document) -> IndexingOutcome:
        state = document.state

        if not document.is_pdf:
            return self._skip(document, SKIP_NOT_PDF)

        if state.last_error and not state.force_reindex:
            return self._skip(document, SKIP_PREVIOUS_ERROR, error=state.last_error)

        data = await self._object_store.read(document.storage_locator)
        digest = content_hash(data)
        wants_financial = await self._wants_financial(document)

        if state.is_indexed and not state.force_reindex and state.content_hash == digest:
            return await self._unchanged(document, data, wants_financial)

        extracted = await asyncio.to_thread(self._extractor.extract, data, document.storage_locator)
        if extracted.is_empty:
            reason = _image_only_reason(extracted.page_count)
            warnings.warn(f"{document.display_name}: {reason}", EmptyTextWarning, stacklevel=2)
            return self._skip(document, reason, num_pages=extracted.page_count)

        # Claim before any vector write so a stale run fails here, not after.
        version = await self._documents.claim_indexing(document.document_id, state.indexing_version)

        chunks = self._chunker.chunk(extracted.full_text, extracted.pages)
        embeddings = await self._embedding_provider.embed([c.text for c in chunks])
        records = [
            VectorRecord(
                record_id=VectorRecord.make_id(document.document_id, version, chunk.sequence_index),
                embedding=embedding,
                text=chunk.text,
                metadata=self._record_metadata(document, chunk, version),
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]

        try:
            await self._vector_store.upsert_batch(records)
            await self._documents.commit_indexed(
                document.document_id,
                claimed_version=version,
                content_hash=digest,
                chunk_count=len(records),
                indexed_at=datetime.now(),
            )
        except PMAssistantError:
            await self._discard_version(document.document_id, version)
            raise

        removed = await self._vector_store.delete_by_document_id(document.document_id, keep_version=version)
        logger.info(
            "document_indexed",
            document_id=document.document_id,
            display_name=document.display_name,
            version=version,
            chunk_count=len(records),
            replaced_records=removed,
            pages=extracted.page_count,
        )

        financial_done = False
        if wants_financial:
            financial_done = await self._process_financial(document, extracted)

        return IndexingOutcome(
            document_id=document.document_id,
            display_name=document.display_name,
            status=IndexStatus.SUCCESS,
            details=IndexingDetails(
                chunks_count=len(records),
                text_length=len(extracted.full_text),
                num_pages=extracted.page_count,
                financial_data_extracted=financial_done,
            ),
        )

    async def _unchanged(self, document: Document, data: bytes, wants_financial: bool) -> IndexingOutcome:
        """Handle an indexed document whose bytes have not changed."""
        logger.info("document_unchanged", document_id=document.document_id, financial=wants_financial)
        if not wants_financial:
            return self._skip(document, SKIP_UNCHANGED, vector_indexing_skipped=True)

        try:
            extracted = await asyncio.to_thread(self._extractor.extract, data, document.storage_locator)
        except PMAssistantError as exc:
            logger.warning("financial_text_extraction_failed", document_id=document.document_id, error=str(exc))
            return self._skip(document, SKIP_UNCHANGED, vector_indexing_skipped=True)

        financial_done = False if extracted.is_empty else await self._process_financial(document, extracted)
        return IndexingOutcome(
            document_id=document.document_id,
            display_name=document.display_name,
            status=IndexStatus.SUCCESS if financial_done else IndexStatus.SKIPPED,
            reason=None if financial_done else SKIP_UNCHANGED,
            details=IndexingDetails(
                chunks_count=document.state.chunk_count,
                text_length=len(extracted.full_text),
                num_pages=extracted.page_count,
                financial_data_extracted=financial_done,
                vector_indexing_skipped=True,
            ),
        )

    async def _process_financial(self, document: Document, extracted: ExtractedDocument) -> bool:
        """Run the statement side-pipeline; failures are logged, never raised."""
        if self._financial_extractor is None or not document.owner_community_id:
            return False
        try:
            statement = await self._financial_extractor.extract(extracted.full_text, document.display_name)
            snapshot = await self._financial_extractor.upsert(
                document.owner_community_id,
                document.document_id,
                statement,
            )
        except PMAssistantError as exc:
            logger.warning(
                "financial_extraction_failed",
                document_id=document.document_id,
                display_name=document.display_name,
                error=str(exc),
            )
            return False
        logger.info(
            "financial_data_extracted",
            document_id=document.document_id,
            community_id=snapshot.community_id,
            year=snapshot.year,
            month=snapshot.month,
        )
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _discard_version(self, document_id: str, version: int) -> None:
        """Remove a run's records after it lost or failed its commit."""
        try:
            removed = await self._vector_store.delete_version(document_id, version)
        except PMAssistantError as exc:
            # The caller re-raises the original failure; the next winning
            # run deletes every other version anyway.
            logger.warning("stale_version_cleanup_failed", document_id=document_id, version=version, error=str(exc))
            return
        logger.info("stale_version_discarded", document_id=document_id, version=version, removed=removed)

    async def _wants_financial(self, document: Document) -> bool:
        if self._financial_extractor is None or not document.owner_community_id:
            return False
        if not document.looks_like_financial_statement:
            return False
        return not await self._financial_extractor.has_snapshot(
            document.owner_community_id,
            document.display_name,
        )

    async def _needs_work(self, document: Document) -> bool:
        state = document.state
        if not state.is_indexed or state.force_reindex:
            return True
        return await self._wants_financial(document)

    @staticmethod
    def _record_metadata(document: Document, chunk: Chunk, version: int) -> dict[str, Any]:
        return {
            "indexing_version": version,
            "document_id": document.document_id,
            "display_name": document.display_name,
            "folder_id": document.folder_id,
            "folder_name": document.folder_name,
            "community_id": document.owner_community_id,
            "folder_type": document.scope.value,
            "content_type": document.content_type,
            "sequence_index": chunk.sequence_index,
            "page_number": chunk.page_number,
            "created_at": document.created_at.isoformat() if document.created_at else None,
        }

    @staticmethod
    def _skip(
        document: Document,
        reason: str,
        error: str | None = None,
        num_pages: int = 0,
        vector_indexing_skipped: bool = False,
    ) -> IndexingOutcome:
        logger.info("document_index_skipped", document_id=document.document_id, reason=reason)
        return IndexingOutcome(
            document_id=document.document_id,
            display_name=document.display_name,
            status=IndexStatus.SKIPPED,
            reason=reason,
            error=error,
            details=IndexingDetails(
                num_pages=num_pages,
                chunks_count=document.state.chunk_count if vector_indexing_skipped else 0,
                vector_indexing_skipped=vector_indexing_skipped,
            ),
        )

    @staticmethod
    def _record(report: BulkIndexingReport, document: Document, result: Any) -> None:
        now = datetime.now()
        if isinstance(result, BaseException):
            message = result.message if isinstance(result, PMAssistantError) else str(result)
            report.failed += 1
            report.errors.append(
                DocumentError(document_id=document.document_id, display_name=document.display_name, error=message)
            )
            report.processed_documents.append(
                ProcessedDocument(
                    document_id=document.document_id,
                    display_name=document.display_name,
                    status=IndexStatus.FAILED,
                    timestamp=now,
                    details={"error": message},
                )
            )
            return

        outcome: IndexingOutcome = result
        status = outcome.status
        if outcome.skipped:
            report.skipped += 1
            report.skipped_documents.append(
                SkippedDocument(
                    document_id=outcome.document_id,
                    display_name=outcome.display_name,
                    reason=outcome.reason,
                    error=outcome.error,
                )
            )
            if outcome.error:
                report.failed += 1
                status = IndexStatus.FAILED
        else:
            report.successful += 1

        report.processed_documents.append(
            ProcessedDocument(
                document_id=outcome.document_id,
                display_name=outcome.display_name,
                status=status,
                timestamp=now,
                details=outcome.details.model_dump(),
            )
        )
