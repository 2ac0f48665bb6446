"""Community directory and resolution models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class CommunityRecord(BaseModel):
    """One entry of the community directory used for resolution."""

    model_config = ConfigDict(frozen=True)

    community_id: str
    display_name: str | None = None
    legal_name: str | None = None
    property_code: str | None = None

    def match_terms(self) -> list[str]:
        """Non-empty display name, legal name and property code, in that order."""
        return [t for t in (self.display_name, self.legal_name, self.property_code) if t]


class ResolutionConfidence(str, Enum):  # noqa: UP042
    HIGH = "high"
    MEDIUM = "medium"
    NONE = "none"


class ResolutionMethod(str, Enum):  # noqa: UP042
    NAME_MATCH = "name_match"
    CODE_MATCH = "code_match"
    PARTIAL_MATCH = "partial_match"
    DEFAULT = "default"


class CommunityResolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    resolved_community_id: str | None = None
    confidence: ResolutionConfidence = ResolutionConfidence.NONE
    method: ResolutionMethod = ResolutionMethod.DEFAULT
    matched_name: str | None = None
    match_count: int | None = None
