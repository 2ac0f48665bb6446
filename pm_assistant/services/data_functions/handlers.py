"""Read-only lookups behind the function catalog.

Every handler returns a JSON-ready dict: ``{"success": True, "data": {...}}``
on success, or ``{"error": code}`` when the subject does not exist.  Store
failures propagate as :class:`~pm_assistant.utils.errors.StoreError`; the
:class:`~pm_assistant.services.data_functions.registry.FunctionRegistry`
turns them into ``query_failed`` payloads.

Payload keys are camelCase since they are handed to the model as-is.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import structlog

from pm_assistant.interfaces.financial_repository import IFinancialSnapshotRepository
from pm_assistant.interfaces.operational_store import IOperationalStore, Row
from pm_assistant.models.financial import FinancialSnapshot
from pm_assistant.services.financial_extractor import parse_number

logger = structlog.get_logger(logger_name=__name__)

Payload = dict[str, Any]

BOARD_MEMBER_TYPE = "Board Member"
_OFFICER_ORDER = {"President": 1, "Vice President": 2, "Treasurer": 3, "Secretary": 4}

_EXPENSE_CATEGORIES = ("generalAdmin", "maintenance", "reserve")
_VARIANCE_THRESHOLD = 0.1


def _ok(data: Payload) -> Payload:
    return {"success": True, "data": data}


def _error(code: str) -> Payload:
    return {"error": code}


def _flag(value: Any) -> bool | None:
    return None if value is None else bool(value)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _full_name(row: Row) -> str:
    return f"{row.get('first_name') or ''} {row.get('last_name') or ''}".strip()


def _management_fee_payload(row: Row) -> Payload:
    return {
        "managementFee": row.get("management_fee"),
        "perUnitFee": row.get("per_unit_fee"),
        "feeType": row.get("fee_type"),
        "increaseType": row.get("increase_type"),
        "increaseEffective": row.get("increase_effective"),
        "boardApprovalRequired": _flag(row.get("board_approval_required")),
        "autoIncrease": _flag(row.get("auto_increase")),
        "fixedCost": row.get("fixed_cost"),
    }


def _commitment_fee_payload(row: Row) -> Payload:
    return {
        "commitmentType": row.get("commitment_type"),
        "entryType": row.get("entry_type"),
        "feeName": row.get("fee_name"),
        "value": row.get("value"),
        "notes": row.get("notes"),
    }


def _invoice_payload(row: Row) -> Payload:
    return {
        "invoiceId": row.get("invoice_id"),
        "invoiceNumber": row.get("invoice_number"),
        "invoiceDate": row.get("invoice_date"),
        "total": row.get("total"),
        "status": row.get("status"),
        "fileId": row.get("file_id"),
    }


def _officer_rank(row: Row) -> tuple[int, str, str]:
    return (
        _OFFICER_ORDER.get(row.get("sub_type") or "", 5),
        row.get("last_name") or "",
        row.get("first_name") or "",
    )


def _category_ytd(breakdown: dict[str, Any], category: str) -> float:
    section = breakdown.get(category)
    if not isinstance(section, dict):
        return 0.0
    return parse_number(section.get("ytd")) or 0.0


def _category_month(breakdown: dict[str, Any], category: str) -> float:
    section = breakdown.get(category)
    if not isinstance(section, dict):
        return 0.0
    return parse_number(section.get("month")) or 0.0


def _percent_string(rate: float | None) -> str | None:
    return f"{rate * 100:.2f}" if rate is not None else None


class DataFunctionHandlers:
    """Implements each catalog function against the stores.

    Parameters
    ----------
    store:
        Read-only operational store (communities, fees, stakeholders,
        billing, invoices).
    financials:
        Monthly financial snapshots written by statement extraction.
    """

    def __init__(
        self,
        store: IOperationalStore,
        financials: IFinancialSnapshotRepository,
    ) -> None:
        self._store = store
        self._financials = financials

    # ------------------------------------------------------------------
    # Community records
    # ------------------------------------------------------------------

    async def get_community_info(self, community_id: str) -> Payload:
        community = await self._store.get_community(community_id)
        if community is None:
            return _error("community_not_found")
        return _ok(
            {
                "communityId": community["community_id"],
                "propertyCode": community.get("property_code"),
                "displayName": community.get("display_name"),
                "legalName": community.get("legal_name"),
                "address": community.get("address"),
                "address2": community.get("address2"),
                "city": community.get("city"),
                "state": community.get("state"),
                "zipcode": community.get("zipcode"),
                "active": _flag(community.get("active")),
                "clientType": community.get("client_type"),
                "serviceType": community.get("service_type"),
            }
        )

    async def get_community_address(self, community_id: str) -> Payload:
        community = await self._store.get_community(community_id)
        if community is None:
            return _error("community_not_found")
        parts = [community.get(k) for k in ("address", "address2", "city", "state", "zipcode")]
        return _ok(
            {
                "communityId": community["community_id"],
                "propertyCode": community.get("property_code"),
                "displayName": community.get("display_name"),
                "fullAddress": ", ".join(str(p) for p in parts if p),
                "address": community.get("address"),
                "address2": community.get("address2"),
                "city": community.get("city"),
                "state": community.get("state"),
                "zipcode": community.get("zipcode"),
            }
        )

    async def get_contract_dates(self, community_id: str) -> Payload:
        community = await self._store.get_community(community_id)
        if community is None:
            return _error("community_not_found")
        return _ok(
            {
                "communityId": community_id,
                "propertyCode": community.get("property_code"),
                "displayName": community.get("display_name"),
                "contractStart": community.get("contract_start"),
                "contractEnd": community.get("contract_end"),
                "isActive": _flag(community.get("active")),
            }
        )

    async def get_management_fees(self, community_id: str) -> Payload:
        fee = await self._store.get_management_fee(community_id)
        if fee is None:
            return _error("no_management_fee_found")
        return _ok({"communityId": community_id, **_management_fee_payload(fee)})

    async def get_board_members(self, community_id: str) -> Payload:
        rows = await self._store.list_stakeholders(community_id, BOARD_MEMBER_TYPE)
        members = [
            {
                "stakeholderId": row.get("stakeholder_id"),
                "firstName": row.get("first_name"),
                "lastName": row.get("last_name"),
                "fullName": _full_name(row),
                "title": row.get("title"),
                "position": row.get("sub_type"),
                "email": row.get("email"),
                "phone": row.get("phone"),
                "mobilePhone": row.get("mobile_phone"),
                "status": row.get("status"),
            }
            for row in sorted(rows, key=_officer_rank)
        ]

        info = await self._store.get_board_information(community_id)
        board_info = None
        if info is not None:
            board_info = {
                "annualMeetingFrequency": info.get("annual_meeting_frequency"),
                "regularMeetingFrequency": info.get("regular_meeting_frequency"),
                "boardMembersRequired": info.get("board_members_required"),
                "quorum": info.get("quorum"),
                "termLimits": info.get("term_limits"),
            }
        return _ok({"communityId": community_id, "boardMembers": members, "boardInfo": board_info})

    async def get_billing_information(self, community_id: str) -> Payload:
        billing = await self._store.get_billing_information(community_id)
        if billing is None:
            return _error("no_billing_information_found")
        return _ok(
            {
                "communityId": community_id,
                "billingFrequency": billing.get("billing_frequency"),
                "billingMonth": billing.get("billing_month"),
                "billingDay": billing.get("billing_day"),
                "noticeRequirement": billing.get("notice_requirement"),
                "coupon": _flag(billing.get("coupon")),
            }
        )

    async def get_invoices(
        self,
        community_id: str,
        status: str | None = None,
        limit: int | None = None,
    ) -> Payload:
        invoices = await self._store.list_invoices(community_id)
        filtered = invoices
        if status:
            wanted = status.lower()
            filtered = [inv for inv in filtered if (inv.get("status") or "").lower() == wanted]
        if limit and limit > 0:
            filtered = filtered[: int(limit)]
        return _ok(
            {
                "communityId": community_id,
                "invoices": [_invoice_payload(inv) for inv in filtered],
                "totalCount": len(invoices),
                "filteredCount": len(filtered),
            }
        )

    async def get_invoice_details(self, invoice_id: str) -> Payload:
        invoice = await self._store.get_invoice(invoice_id)
        if invoice is None:
            return _error("invoice_not_found")
        charges = await self._store.list_invoice_charges(invoice_id)
        return _ok(
            {
                **_invoice_payload(invoice),
                "communityId": invoice.get("community_id"),
                "charges": [
                    {
                        "description": c.get("description"),
                        "amount": c.get("amount"),
                        "displayOrder": c.get("display_order"),
                    }
                    for c in charges
                ],
            }
        )

    async def get_fee_structure(self, community_id: str) -> Payload:
        fee = await self._store.get_management_fee(community_id)
        variances = await self._store.list_fee_variances(community_id)
        commitments = await self._store.list_commitment_fees(community_id)
        return _ok(
            {
                "communityId": community_id,
                "managementFee": _management_fee_payload(fee) if fee is not None else None,
                "feeVariances": [
                    {
                        "feeName": v.get("fee_name"),
                        "defaultAmount": v.get("default_amount"),
                        "varianceType": v.get("variance_type"),
                        "customAmount": v.get("custom_amount"),
                        "notes": v.get("notes"),
                    }
                    for v in variances
                ],
                "commitmentFees": [_commitment_fee_payload(c) for c in commitments],
            }
        )

    async def get_commitment_fees(self, community_id: str) -> Payload:
        commitments = await self._store.list_commitment_fees(community_id)
        return _ok(
            {
                "communityId": community_id,
                "commitmentFees": [_commitment_fee_payload(c) for c in commitments],
            }
        )

    async def get_stakeholders(self, community_id: str, stakeholder_type: str | None = None) -> Payload:
        rows = await self._store.list_stakeholders(community_id, stakeholder_type)
        return _ok(
            {
                "communityId": community_id,
                "stakeholderType": stakeholder_type or "all",
                "stakeholders": [
                    {
                        "stakeholderId": row.get("stakeholder_id"),
                        "type": row.get("type"),
                        "subType": row.get("sub_type"),
                        "firstName": row.get("first_name"),
                        "lastName": row.get("last_name"),
                        "fullName": _full_name(row) or row.get("company_name"),
                        "companyName": row.get("company_name"),
                        "email": row.get("email"),
                        "phone": row.get("phone"),
                        "mobilePhone": row.get("mobile_phone"),
                        "preferredContactMethod": row.get("preferred_contact_method"),
                        "status": row.get("status"),
                        "title": row.get("title"),
                        "department": row.get("department"),
                    }
                    for row in rows
                ],
                "count": len(rows),
            }
        )

    # ------------------------------------------------------------------
    # Financial analytics
    # ------------------------------------------------------------------

    async def get_financial_summary(self, community_id: str, year: int | None = None) -> Payload:
        year = int(year or date.today().year)
        snapshots = await self._financials.list_snapshots(community_id, year)
        if not snapshots:
            return _ok(
                {
                    "communityId": community_id,
                    "year": year,
                    "message": "No financial data found for this year",
                    "months": [],
                }
            )

        latest = snapshots[-1]
        count = len(snapshots)
        return _ok(
            {
                "communityId": community_id,
                "year": year,
                "months": [
                    {
                        "month": s.month,
                        "date": _iso(s.statement_date),
                        "income": s.total_income,
                        "expenses": s.total_expenses,
                        "netIncome": s.net_income,
                        "ytdIncome": s.ytd_income,
                        "ytdExpenses": s.ytd_expenses,
                        "ytdNetIncome": s.ytd_net_income,
                        "assessmentIncome": s.assessment_income,
                        "collectionRate": s.collection_rate,
                    }
                    for s in snapshots
                ],
                "summary": {
                    "totalYTDIncome": latest.ytd_income,
                    "totalYTDExpenses": latest.ytd_expenses,
                    "totalYTDNetIncome": latest.ytd_net_income,
                    "avgMonthlyIncome": sum(s.total_income or 0 for s in snapshots) / count,
                    "avgMonthlyExpenses": sum(s.total_expenses or 0 for s in snapshots) / count,
                    "monthsWithData": count,
                },
            }
        )

    async def get_expense_analysis(
        self,
        community_id: str,
        year: int | None = None,
        category: str | None = None,
    ) -> Payload:
        year = int(year or date.today().year)
        snapshots = await self._financials.list_snapshots(community_id, year)
        if not snapshots:
            return _ok(
                {
                    "communityId": community_id,
                    "year": year,
                    "message": "No expense data found for this year",
                    "expenses": [],
                }
            )

        expenses: list[Payload] = []
        for s in snapshots:
            entry: Payload = {
                "month": s.month,
                "totalExpenses": s.total_expenses,
                "ytdExpenses": s.ytd_expenses,
            }
            for name in _EXPENSE_CATEGORIES:
                entry[name] = s.expense_breakdown.get(name) or {}
            if category:
                entry["expenses"] = s.expense_breakdown.get(category) or {}
            expenses.append(entry)

        return _ok(
            {
                "communityId": community_id,
                "year": year,
                "category": category or "all",
                "expenses": expenses,
                "summary": {
                    "totalYTDExpenses": expenses[-1]["ytdExpenses"],
                    "avgMonthlyExpenses": sum(e["totalExpenses"] or 0 for e in expenses) / len(expenses),
                    "monthsWithData": len(expenses),
                },
            }
        )

    async def get_budget_recommendations(
        self,
        community_id: str,
        current_year: int | None = None,
        budget_year: int | None = None,
    ) -> Payload:
        current_year = int(current_year or date.today().year)
        budget_year = int(budget_year or current_year + 1)
        snapshots = await self._financials.list_snapshots(community_id, current_year, descending=True)
        if not snapshots:
            return _ok(
                {
                    "communityId": community_id,
                    "currentYear": current_year,
                    "budgetYear": budget_year,
                    "message": "No financial data found for analysis",
                    "recommendations": [],
                }
            )

        latest = snapshots[0]
        months_elapsed = latest.month
        ytd_expenses = latest.ytd_expenses or 0
        avg_monthly_expense = ytd_expenses / months_elapsed if months_elapsed > 0 else 0
        recommendations = self._recommend(latest, months_elapsed)

        total_recommended = sum(r["recommendedBudget"] for r in recommendations)
        total_projected = sum(r["projectedAnnual"] for r in recommendations)
        overall = (total_recommended / total_projected - 1) * 100 if total_projected else 0.0

        logger.debug(
            "budget_recommendations_computed",
            community_id=community_id,
            current_year=current_year,
            categories=len(recommendations),
        )
        return _ok(
            {
                "communityId": community_id,
                "currentYear": current_year,
                "budgetYear": budget_year,
                "monthsElapsed": months_elapsed,
                "ytdExpenses": ytd_expenses,
                "ytdIncome": latest.ytd_income or 0,
                "avgMonthlyExpense": avg_monthly_expense,
                "projectedAnnualExpense": avg_monthly_expense * 12,
                "recommendations": recommendations,
                "summary": {
                    "totalProjectedAnnual": total_projected,
                    "totalRecommendedBudget": total_recommended,
                    "overallIncreasePercent": overall,
                    "recommendation": (
                        "Significant budget increase needed based on current spending patterns"
                        if total_recommended > total_projected * 1.1
                        else "Standard 2-3% increase recommended"
                    ),
                },
            }
        )

    async def get_collection_rate(self, community_id: str, year: int | None = None) -> Payload:
        year = int(year or date.today().year)
        snapshots = await self._financials.list_snapshots(community_id, year, descending=True)
        if not snapshots:
            return _ok(
                {
                    "communityId": community_id,
                    "year": year,
                    "message": "No collection rate data found for this year",
                    "collectionRates": [],
                }
            )

        rates = [
            {
                "month": s.month,
                "assessmentIncome": s.assessment_income,
                "collectionRate": s.collection_rate,
                "collectionRatePercent": _percent_string(s.collection_rate),
            }
            for s in snapshots
        ]
        with_data = [r["collectionRate"] for r in rates if r["collectionRate"] is not None]
        average = sum(with_data) / len(with_data) if with_data else None
        return _ok(
            {
                "communityId": community_id,
                "year": year,
                "collectionRates": rates,
                "summary": {
                    "avgCollectionRate": average,
                    "avgCollectionRatePercent": _percent_string(average),
                    "monthsWithData": len(with_data),
                    "latestCollectionRate": rates[0]["collectionRatePercent"],
                },
            }
        )

    @staticmethod
    def _recommend(latest: FinancialSnapshot, months_elapsed: int) -> list[Payload]:
        """Per-category projections from the latest month's YTD breakdown.

        Maintenance gets a smaller buffer when the latest month's run rate
        differs from the YTD average by more than 10%.
        """
        breakdown = latest.expense_breakdown
        recommendations: list[Payload] = []

        def projection(category: str) -> tuple[float, float, float]:
            ytd = _category_ytd(breakdown, category)
            avg = ytd / months_elapsed if months_elapsed > 0 else 0.0
            return ytd, avg, avg * 12

        if breakdown.get("generalAdmin"):
            ytd, avg, projected = projection("generalAdmin")
            recommendations.append(
                {
                    "category": "General/Admin",
                    "currentYTD": ytd,
                    "avgMonthly": avg,
                    "projectedAnnual": projected,
                    "recommendedBudget": projected * 1.025,
                    "increasePercent": 2.5,
                    "reason": "Standard year-over-year increase",
                }
            )

        if breakdown.get("maintenance"):
            ytd, avg, projected = projection("maintenance")
            run_rate = _category_month(breakdown, "maintenance") * 12
            significant = abs(run_rate - projected) > _VARIANCE_THRESHOLD * projected
            recommended = projected * (1.02 if significant else 1.025)
            recommendations.append(
                {
                    "category": "Maintenance",
                    "currentYTD": ytd,
                    "avgMonthly": avg,
                    "projectedAnnual": projected,
                    "recommendedBudget": recommended,
                    "increasePercent": (recommended / projected - 1) * 100 if projected else 0.0,
                    "reason": (
                        "Significant variance detected, adding buffer"
                        if significant
                        else "Standard year-over-year increase"
                    ),
                }
            )

        if breakdown.get("reserve"):
            ytd, avg, projected = projection("reserve")
            recommendations.append(
                {
                    "category": "Reserve",
                    "currentYTD": ytd,
                    "avgMonthly": avg,
                    "projectedAnnual": projected,
                    "recommendedBudget": projected * 1.03,
                    "increasePercent": 3.0,
                    "reason": "Reserve funds typically need higher increases",
                }
            )

        return recommendations
