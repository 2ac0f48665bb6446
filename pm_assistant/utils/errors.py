"""Custom exception hierarchy for pm-assistant.

All application exceptions inherit from :class:`PMAssistantError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "anthropic", "chromadb") caused the failure.

The hierarchy is organized by pipeline domain:

    PMAssistantError  (base -- catch-all for any pm-assistant error)
    +-- ExtractionError           (document bytes -> page text)
    +-- EmbeddingError            (text -> vector)
    +-- StoreError                (vector store / relational store / object store)
    +-- ModelError                (hosted model call; auth, rate limit, generic)
    +-- FunctionExecutionError    (one structured lookup failed)
    +-- AbortedError              (conversation iteration cap reached)
    +-- FinancialExtractionError  (statement -> snapshot side-pipeline)
    +-- IndexingConflictError     (lost compare-and-swap on indexing_version)
    +-- DocumentNotFoundError     (unknown document reference)
    +-- ConfigurationError        (startup / missing config)

Per-document indexing failures are recorded on the document's state by the
indexing service and never escape a bulk run.  Function failures are turned
into payloads for the model.  Model failures propagate as :class:`ModelError`
carrying a user-facing message.
"""

from __future__ import annotations

from enum import Enum


class PMAssistantError(Exception):
    """Base exception for all pm-assistant errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Indexing errors
# ---------------------------------------------------------------------------

class ExtractionError(PMAssistantError):
    """Raised when a document cannot be opened or read (fatal, never retried)."""

    def __init__(
        self,
        message: str = "Document text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyTextWarning(UserWarning):
    """Marks a document with no extractable text (e.g. a scanned image).

    Never raised through the indexing pipeline; the document is reported as
    skipped with a reason instead of being marked failed.
    """


class EmbeddingError(PMAssistantError):
    """Raised when the embedding provider fails; fails the whole document."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreError(PMAssistantError):
    """Raised when a backing store is unreachable or rejects an operation.

    Not retried within the call that raised it.
    """

    def __init__(
        self,
        message: str = "Store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IndexingConflictError(PMAssistantError):
    """Raised when another run committed a newer indexing state first."""

    def __init__(
        self,
        message: str = "Concurrent indexing run detected",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(PMAssistantError):
    """Raised when a document reference does not resolve to a known document."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FinancialExtractionError(PMAssistantError):
    """Raised when a financial statement cannot be turned into a snapshot.

    Isolated to the financial side-pipeline: the indexing service logs it
    and carries on.
    """

    def __init__(
        self,
        message: str = "Financial statement extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Conversation errors
# ---------------------------------------------------------------------------

class ModelErrorKind(str, Enum):  # noqa: UP042
    """Classification of a failed hosted-model call."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    GENERIC = "generic"


_USER_MESSAGES: dict[ModelErrorKind, str] = {
    ModelErrorKind.AUTH: "Authentication failed. Please verify the model provider API key is correct.",
    ModelErrorKind.RATE_LIMIT: "Rate limit exceeded. Please try again in a moment.",
    ModelErrorKind.GENERIC: "The assistant could not complete the request. Please try again.",
}


class ModelError(PMAssistantError):
    """Raised when a hosted-model API call fails.

    ``kind`` classifies the failure so the HTTP layer and CLI can show the
    matching :attr:`user_message`.
    """

    def __init__(
        self,
        message: str = "Model API call failed",
        provider_name: str | None = None,
        kind: ModelErrorKind = ModelErrorKind.GENERIC,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._kind = kind

    @property
    def kind(self) -> ModelErrorKind:
        return self._kind

    @property
    def user_message(self) -> str:
        if self._kind is ModelErrorKind.GENERIC:
            return f"AI Service error: {self.message}"
        return _USER_MESSAGES[self._kind]


class FunctionExecutionError(PMAssistantError):
    """Raised inside a data-function handler; surfaced to the model as data.

    ``code`` becomes the ``error`` field of the tool-result payload.
    """

    def __init__(
        self,
        message: str = "Function execution failed",
        provider_name: str | None = None,
        code: str = "execution_failed",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._code = code

    @property
    def code(self) -> str:
        return self._code


class AbortedError(PMAssistantError):
    """Raised when the tool-calling loop reaches its cap without an answer."""

    def __init__(
        self,
        message: str = "Max iterations reached without a final answer",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(PMAssistantError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


def classify_model_failure(message: str, status_code: int | None = None) -> ModelErrorKind:
    """Map a failed model call to a :class:`ModelErrorKind`.

    Status codes win when the SDK exposes one; otherwise the error text is
    inspected for the same markers.
    """
    lowered = message.lower()
    if status_code in (401, 403) or "api_key" in lowered or "api key" in lowered or "401" in lowered:
        return ModelErrorKind.AUTH
    if status_code == 429 or "429" in lowered or "rate limit" in lowered:
        return ModelErrorKind.RATE_LIMIT
    return ModelErrorKind.GENERIC
