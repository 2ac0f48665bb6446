"""Document and indexing models.

A :class:`Document` is an uploaded file that belongs to a community folder
or to the shared ("Corporate") area.  Documents are created by the back
office; this package only reads them and maintains their
:class:`IndexingState`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

PDF_CONTENT_TYPE = "application/pdf"


class DocumentScope(str, Enum):  # noqa: UP042
    """Folder area a document lives in."""

    COMMUNITY = "Community"
    SHARED = "Corporate"


class IndexStatus(str, Enum):  # noqa: UP042
    """Per-document outcome of an indexing attempt."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class IndexingState(BaseModel):
    """Indexing bookkeeping attached to a document.

    ``is_indexed`` implies ``content_hash`` is the SHA-256 of the bytes last
    indexed.  A non-empty ``last_error`` blocks automatic re-processing until
    cleared or ``force_reindex`` is set.
    """

    model_config = ConfigDict(frozen=True)

    is_indexed: bool = False
    last_indexed_at: datetime | None = None
    indexing_version: int = Field(default=0, ge=0)
    content_hash: str | None = None
    chunk_count: int = Field(default=0, ge=0)
    last_error: str | None = None
    force_reindex: bool = False


class Document(BaseModel):
    """An uploaded file known to the back office."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Stable document identifier.")
    display_name: str = Field(description="Original file name shown to users.")
    content_type: str = Field(default=PDF_CONTENT_TYPE, description="MIME type of the stored bytes.")
    scope: DocumentScope = Field(default=DocumentScope.COMMUNITY)
    owner_community_id: str | None = Field(
        default=None,
        description="Owning community; None for shared documents.",
    )
    storage_locator: str = Field(description="Key or path understood by the object store.")
    folder_id: str | None = None
    folder_name: str | None = None
    created_at: datetime | None = None
    state: IndexingState = Field(default_factory=IndexingState)

    @property
    def is_pdf(self) -> bool:
        return self.content_type == PDF_CONTENT_TYPE

    @property
    def looks_like_financial_statement(self) -> bool:
        name = self.display_name.lower()
        return "financial" in name or "statement" in name


class IndexingFilter(BaseModel):
    """Optional narrowing for a bulk indexing run."""

    model_config = ConfigDict(frozen=True)

    community_id: str | None = None
    folder_type: DocumentScope | None = None


class IndexingDetails(BaseModel):
    """Per-document counters reported by the indexer."""

    model_config = ConfigDict(frozen=True)

    chunks_count: int = 0
    text_length: int = 0
    num_pages: int = 0
    financial_data_extracted: bool = False
    vector_indexing_skipped: bool = False


class IndexingOutcome(BaseModel):
    """Result of indexing one document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    display_name: str
    status: IndexStatus
    reason: str | None = None
    error: str | None = None
    details: IndexingDetails = Field(default_factory=IndexingDetails)

    @property
    def skipped(self) -> bool:
        return self.status is IndexStatus.SKIPPED


class DocumentError(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    display_name: str
    error: str


class SkippedDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    display_name: str
    reason: str | None = None
    error: str | None = None


class ProcessedDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    display_name: str
    status: IndexStatus
    timestamp: datetime
    details: dict[str, Any] = Field(default_factory=dict)


class BulkIndexingReport(BaseModel):
    """Aggregate report of :meth:`DocumentIndexingService.index_all_pending`.

    A skip caused by a stale error counts as skipped *and* failed.
    """

    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[DocumentError] = Field(default_factory=list)
    skipped_documents: list[SkippedDocument] = Field(default_factory=list)
    processed_documents: list[ProcessedDocument] = Field(default_factory=list)
