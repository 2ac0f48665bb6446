"""Retrieval data models: extracted text, chunks, vector records and hits.

Indexing turns a document's bytes into an :class:`ExtractedDocument`, splits
the text into :class:`Chunk` windows, embeds every chunk and stores one
:class:`VectorRecord` per chunk.  Searches return :class:`ScoredRecord`
objects which the retrieval service reshapes into
:class:`RetrievedDocument` for prompts and provenance.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PageText(BaseModel):
    """Text of one page, 1-based."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str = ""


class ExtractedDocument(BaseModel):
    """Output of the document extractor.

    ``full_text`` is every page's text joined by a blank line and stripped.
    An empty ``full_text`` means the file has no text layer (typically a
    scanned image), which callers report as a skip rather than a failure.
    """

    model_config = ConfigDict(frozen=True)

    full_text: str = ""
    pages: list[PageText] = Field(default_factory=list)
    page_count: int = Field(default=0, ge=0)
    metadata: dict[str, str | None] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.full_text


class Chunk(BaseModel):
    """One window of document text. Lives only for a single indexing run."""

    model_config = ConfigDict(frozen=True)

    text: str
    start_offset: int = Field(ge=0, description="Window start in the source text.")
    page_number: int = Field(default=1, ge=1)
    sequence_index: int = Field(ge=0)


class VectorRecord(BaseModel):
    """A chunk plus its embedding as written to the vector store.

    ``record_id`` is ``"{document_id}-v{version}-chunk-{sequence_index}"``
    so each indexing run writes its own record set; the previous set is
    deleted only once the run has committed.
    """

    model_config = ConfigDict(frozen=True)

    record_id: str
    embedding: list[float]
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def make_id(document_id: str, version: int, sequence_index: int) -> str:
        return f"{document_id}-v{version}-chunk-{sequence_index}"


class ScoredRecord(BaseModel):
    """A vector-store hit with a similarity score in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    text: str
    score: float = Field(ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentSource(BaseModel):
    """Provenance fields carried by a retrieved document."""

    model_config = ConfigDict(frozen=True)

    document_id: str | None = None
    display_name: str | None = None
    folder_name: str | None = None
    community_id: str | None = None
    folder_type: str | None = None
    page_number: int | None = None
    sequence_index: int | None = None
    created_at: str | None = None


class RetrievedDocument(BaseModel):
    """A retrieved chunk shaped for prompts and source listings."""

    model_config = ConfigDict(frozen=True)

    text: str
    score: float = Field(ge=0.0, le=1.0)
    source: DocumentSource


class ScopeKind(str, Enum):  # noqa: UP042
    UNSCOPED = "unscoped"
    COMMUNITY = "community"
    SHARED = "shared"
    FOLDER_TYPE = "folder_type"


class RetrievalScope(BaseModel):
    """Where a retrieval query may look.

    Build with the class methods rather than directly.
    """

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind = ScopeKind.UNSCOPED
    community_id: str | None = None
    folder_type: str | None = None

    @classmethod
    def unscoped(cls) -> RetrievalScope:
        return cls()

    @classmethod
    def community(cls, community_id: str) -> RetrievalScope:
        return cls(kind=ScopeKind.COMMUNITY, community_id=community_id)

    @classmethod
    def shared(cls) -> RetrievalScope:
        return cls(kind=ScopeKind.SHARED, folder_type="Corporate")

    @classmethod
    def for_folder_type(cls, folder_type: str) -> RetrievalScope:
        if folder_type == "Corporate":
            return cls.shared()
        return cls(kind=ScopeKind.FOLDER_TYPE, folder_type=folder_type)


class VectorStoreStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection_name: str
    total_records: int = 0
    persist_directory: str | None = None
