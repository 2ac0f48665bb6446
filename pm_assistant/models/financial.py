"""Financial statement models.

:class:`ExtractedStatement` is what the model returns for a monthly
statement; :class:`FinancialSnapshot` is the row persisted per
``(community_id, year, month)``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StatementPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    month: int = Field(ge=1, le=12)
    statement_date: date


class ExtractedStatement(BaseModel):
    """Structured data parsed from one statement.

    The four sections mirror the JSON the model is asked to produce; their
    inner layout is kept as plain dicts because statements vary widely.
    """

    model_config = ConfigDict(frozen=True)

    period: StatementPeriod | None = None
    income: dict[str, Any] = Field(default_factory=dict)
    expenses: dict[str, Any] = Field(default_factory=dict)
    balance_sheet: dict[str, Any] = Field(default_factory=dict)
    calculations: dict[str, Any] = Field(default_factory=dict)


class FinancialSnapshot(BaseModel):
    """Monthly financial figures for one community."""

    model_config = ConfigDict(frozen=True)

    community_id: str
    year: int
    month: int = Field(ge=1, le=12)
    source_document_id: str | None = None
    statement_date: date | None = None
    income_breakdown: dict[str, Any] = Field(default_factory=dict)
    expense_breakdown: dict[str, Any] = Field(default_factory=dict)
    balance_sheet: dict[str, Any] = Field(default_factory=dict)
    total_income: float | None = None
    total_expenses: float | None = None
    net_income: float | None = None
    ytd_income: float | None = None
    ytd_expenses: float | None = None
    ytd_net_income: float | None = None
    assessment_income: float | None = None
    collection_rate: float | None = None
    extraction_version: int = 1
    extracted_at: datetime | None = None
