"""Utility modules for pm-assistant.

- **errors** -- Domain exception hierarchy rooted at PMAssistantError; each
  pipeline stage raises its own subclass so callers can handle failures
  without broad ``except Exception`` blocks.
- **concurrency** -- semaphore-throttled gather and batch slicing used by
  the bulk indexer.
- **logging** -- structlog setup with a dual renderer: coloured console
  output in development, structured JSON in production.
"""

from pm_assistant.utils.concurrency import batched, throttled_gather
from pm_assistant.utils.errors import (
    AbortedError,
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingError,
    EmptyTextWarning,
    ExtractionError,
    FinancialExtractionError,
    FunctionExecutionError,
    IndexingConflictError,
    ModelError,
    ModelErrorKind,
    PMAssistantError,
    StoreError,
    classify_model_failure,
)
from pm_assistant.utils.logging import configure_logging, get_logger

__all__ = [
    "AbortedError",
    "ConfigurationError",
    "DocumentNotFoundError",
    "EmbeddingError",
    "EmptyTextWarning",
    "ExtractionError",
    "FinancialExtractionError",
    "FunctionExecutionError",
    "IndexingConflictError",
    "ModelError",
    "ModelErrorKind",
    "PMAssistantError",
    "StoreError",
    "batched",
    "classify_model_failure",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
