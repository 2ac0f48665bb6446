"""pm-assistant domain models -- re-exports all public model classes.

Submodules by concern:
    - community.py     -- community directory entries and resolution results
    - conversation.py  -- chat turns, tool calls, provenance and usage
    - documents.py     -- documents, indexing state and bulk reports
    - financial.py     -- extracted statements and monthly snapshots
    - rag.py           -- extracted text, chunks, vector records and hits
"""

from __future__ import annotations

from pm_assistant.models.community import (
    CommunityRecord,
    CommunityResolution,
    ResolutionConfidence,
    ResolutionMethod,
)
from pm_assistant.models.conversation import (
    ChatOptions,
    ChatResult,
    ChatSources,
    ChatUsage,
    ContentBlock,
    ConversationPhase,
    ConversationTurn,
    CostBreakdown,
    FunctionCallRecord,
    FunctionDefinition,
    ModelTurn,
    SourceDocument,
    TokenUsage,
    ToolCall,
)
from pm_assistant.models.documents import (
    PDF_CONTENT_TYPE,
    BulkIndexingReport,
    Document,
    DocumentError,
    DocumentScope,
    IndexingDetails,
    IndexingFilter,
    IndexingOutcome,
    IndexingState,
    IndexStatus,
    ProcessedDocument,
    SkippedDocument,
)
from pm_assistant.models.financial import ExtractedStatement, FinancialSnapshot, StatementPeriod
from pm_assistant.models.rag import (
    Chunk,
    DocumentSource,
    ExtractedDocument,
    PageText,
    RetrievalScope,
    RetrievedDocument,
    ScopeKind,
    ScoredRecord,
    VectorRecord,
    VectorStoreStats,
)

__all__ = [
    "PDF_CONTENT_TYPE",
    "BulkIndexingReport",
    "ChatOptions",
    "ChatResult",
    "ChatSources",
    "ChatUsage",
    "Chunk",
    "CommunityRecord",
    "CommunityResolution",
    "ContentBlock",
    "ConversationPhase",
    "ConversationTurn",
    "CostBreakdown",
    "Document",
    "DocumentError",
    "DocumentScope",
    "DocumentSource",
    "ExtractedDocument",
    "ExtractedStatement",
    "FinancialSnapshot",
    "FunctionCallRecord",
    "FunctionDefinition",
    "IndexStatus",
    "IndexingDetails",
    "IndexingFilter",
    "IndexingOutcome",
    "IndexingState",
    "ModelTurn",
    "PageText",
    "ProcessedDocument",
    "ResolutionConfidence",
    "ResolutionMethod",
    "RetrievalScope",
    "RetrievedDocument",
    "ScopeKind",
    "ScoredRecord",
    "SkippedDocument",
    "SourceDocument",
    "StatementPeriod",
    "TokenUsage",
    "ToolCall",
    "VectorRecord",
    "VectorStoreStats",
]
