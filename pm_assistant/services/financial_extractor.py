"""Financial statement extraction.

Monthly statements for a community are uploaded as PDFs whose file names
carry the period as ``YYYYMM`` (e.g. ``Financial Statement 202403.pdf``).
The extractor asks the model to read the statement text into a fixed JSON
structure, then :meth:`FinancialStatementExtractor.upsert` derives the
headline figures and writes one snapshot per ``(community, year, month)``.

Failures raise :class:`~pm_assistant.utils.errors.FinancialExtractionError`;
the indexing service logs them and carries on with vector indexing.
"""

from __future__ import annotations

import calendar
import json
import re
from datetime import date, datetime
from typing import Any

import structlog

from pm_assistant.interfaces.financial_repository import IFinancialSnapshotRepository
from pm_assistant.interfaces.llm_provider import ILLMProvider
from pm_assistant.models.financial import ExtractedStatement, FinancialSnapshot, StatementPeriod
from pm_assistant.utils.errors import FinancialExtractionError, ModelError

logger = structlog.get_logger(logger_name=__name__)

_PERIOD_PATTERN = re.compile(r"(\d{4})(\d{2})")
_MAX_TEXT_CHARS = 100_000
_TRUNCATION_MARKER = "\n\n[... text truncated ...]"
_EXTRACTION_VERSION = 1

_SYSTEM_PROMPT = (
    "You are a financial data extraction assistant for a property management "
    "company. You read monthly HOA financial statements and return the figures "
    "as strict JSON. Respond with JSON only, no commentary."
)

_STRUCTURE = """\
{
  "income": {
    "assessments": {"monthTotal": number, "ytdTotal": number, "byCommunity": {"<name>": number}},
    "interestIncome": {"month": number, "ytd": number},
    "lateFees": {"month": number, "ytd": number},
    "violationFines": {"month": number, "ytd": number},
    "total": {"month": number, "ytd": number}
  },
  "expenses": {
    "generalAdmin": {"month": number, "ytd": number, "categories": {"<name>": {"month": number, "ytd": number}}},
    "maintenance": {"month": number, "ytd": number, "categories": {"<name>": {"month": number, "ytd": number}}},
    "reserve": {"month": number, "ytd": number, "byCommunity": {"<name>": number}},
    "total": {"month": number, "ytd": number}
  },
  "balanceSheet": {
    "totalCash": number,
    "accountsReceivable": number,
    "fundBalances": {"operating": number, "reserve": number}
  },
  "calculations": {
    "netIncome": {"month": number, "ytd": number},
    "collectionRate": number
  }
}"""

_USER_PROMPT_TEMPLATE = """\
Extract the financial data from the statement below into exactly this JSON structure:

{structure}

Rules:
- Use plain numbers (no currency symbols or thousands separators).
- Use null for any figure the statement does not show.
- collectionRate is a fraction between 0 and 1.

STATEMENT TEXT:
{text}
"""


def parse_statement_period(filename: str) -> StatementPeriod | None:
    """Derive the statement period from the first ``YYYYMM`` in *filename*.

    Returns ``None`` when no valid year/month pair is present.  The
    statement date is the last day of that month.
    """
    match = _PERIOD_PATTERN.search(filename or "")
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    last_day = calendar.monthrange(year, month)[1]
    return StatementPeriod(year=year, month=month, statement_date=date(year, month, last_day))


def _strip_code_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.strip().startswith("```")]
        text = "\n".join(lines).strip()
    if not text.startswith("{"):
        json_match = re.search(r"\{[\s\S]*\}", text)
        if json_match:
            text = json_match.group(0)
    return text


def parse_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("$", "").strip()
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def _dig(data: dict[str, Any], *path: str) -> Any:
    current: Any = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _difference(a: float | None, b: float | None) -> float | None:
    if a is None or b is None:
        return None
    return a - b


class FinancialStatementExtractor:
    """Extracts and persists monthly financial snapshots.

    Parameters
    ----------
    llm_provider:
        Model used to read statement text.
    repository:
        Snapshot store keyed by ``(community_id, year, month)``.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        repository: IFinancialSnapshotRepository,
    ) -> None:
        self._llm = llm_provider
        self._repository = repository

    async def has_snapshot(self, community_id: str, filename: str) -> bool:
        """Return ``True`` if a snapshot exists for the period in *filename*.

        A file name without a period counts as covered since nothing could
        be saved for it anyway.
        """
        period = parse_statement_period(filename)
        if period is None:
            return True
        existing = await self._repository.get_snapshot(community_id, period.year, period.month)
        return existing is not None

    async def extract(self, text: str, filename: str) -> ExtractedStatement:
        """Read *text* into an :class:`ExtractedStatement`.

        Raises
        ------
        FinancialExtractionError
            If the model call fails or its reply is not the expected JSON.
        """
        period = parse_statement_period(filename)
        body = text
        if len(body) > _MAX_TEXT_CHARS:
            body = body[:_MAX_TEXT_CHARS] + _TRUNCATION_MARKER

        prompt = _USER_PROMPT_TEMPLATE.format(structure=_STRUCTURE, text=body)
        try:
            raw = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=0.0,
                max_tokens=4096,
            )
        except ModelError as exc:
            raise FinancialExtractionError(
                message=f"Model call failed for {filename}: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc

        try:
            data = json.loads(_strip_code_fences(raw))
        except json.JSONDecodeError as exc:
            raise FinancialExtractionError(
                message=f"Model reply for {filename} is not valid JSON: {exc}",
                provider_name=self._llm.get_provider_name(),
            ) from exc
        if not isinstance(data, dict):
            raise FinancialExtractionError(
                message=f"Model reply for {filename} is not a JSON object",
                provider_name=self._llm.get_provider_name(),
            )

        logger.info(
            "financial_statement_extracted",
            filename=filename,
            period=f"{period.year}-{period.month:02d}" if period else None,
            text_length=len(text),
        )
        return ExtractedStatement(
            period=period,
            income=data.get("income") or {},
            expenses=data.get("expenses") or {},
            balance_sheet=data.get("balanceSheet") or {},
            calculations=data.get("calculations") or {},
        )

    async def upsert(
        self,
        community_id: str,
        document_id: str,
        statement: ExtractedStatement,
    ) -> FinancialSnapshot:
        """Compute headline figures and write the period's snapshot.

        Raises
        ------
        FinancialExtractionError
            If the statement has no period.
        """
        period = statement.period
        if period is None:
            raise FinancialExtractionError(
                message=f"Statement for document {document_id} has no derivable period",
            )

        total_income = parse_number(_dig(statement.income, "total", "month"))
        total_expenses = parse_number(_dig(statement.expenses, "total", "month"))
        ytd_income = parse_number(_dig(statement.income, "total", "ytd"))
        ytd_expenses = parse_number(_dig(statement.expenses, "total", "ytd"))

        snapshot = FinancialSnapshot(
            community_id=community_id,
            year=period.year,
            month=period.month,
            source_document_id=document_id,
            statement_date=period.statement_date,
            income_breakdown=statement.income,
            expense_breakdown=statement.expenses,
            balance_sheet=statement.balance_sheet,
            total_income=total_income,
            total_expenses=total_expenses,
            net_income=_difference(total_income, total_expenses),
            ytd_income=ytd_income,
            ytd_expenses=ytd_expenses,
            ytd_net_income=_difference(ytd_income, ytd_expenses),
            assessment_income=parse_number(_dig(statement.income, "assessments", "ytdTotal")),
            collection_rate=parse_number(statement.calculations.get("collectionRate")),
            extraction_version=_EXTRACTION_VERSION,
            extracted_at=datetime.now(),
        )
        await self._repository.upsert_snapshot(snapshot)
        return snapshot
