"""pm-assistant API layer: routes, schemas and middleware."""

from pm_assistant.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from pm_assistant.api.routes import router
from pm_assistant.api.schemas import (
    ChatRequest,
    ErrorResponse,
    HealthResponse,
    IndexPendingRequest,
    ResetFailedRequest,
    ResetFailedResponse,
    StatusResponse,
    VectorStatsResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ChatRequest",
    "ErrorResponse",
    "HealthResponse",
    "IndexPendingRequest",
    "ResetFailedRequest",
    "ResetFailedResponse",
    "StatusResponse",
    "VectorStatsResponse",
]
