"""Unit tests for DataFunctionHandlers against seeded SQLite stores."""

from __future__ import annotations

from datetime import date

import pytest
import pytest_asyncio

from pm_assistant.models.financial import FinancialSnapshot
from pm_assistant.providers.sqlite.financial_repository import SQLiteFinancialRepository
from pm_assistant.providers.sqlite.operational_store import SQLiteOperationalStore
from pm_assistant.services.data_functions.handlers import DataFunctionHandlers


@pytest.fixture
def handlers(
    operational_store: SQLiteOperationalStore,
    financial_repository: SQLiteFinancialRepository,
) -> DataFunctionHandlers:
    return DataFunctionHandlers(operational_store, financial_repository)


@pytest_asyncio.fixture
async def seeded_financials(financial_repository: SQLiteFinancialRepository) -> SQLiteFinancialRepository:
    """Three months of 2025 snapshots for c-lakeside (months 1, 2 and 4)."""
    snapshots = [
        FinancialSnapshot(
            community_id="c-lakeside",
            year=2025,
            month=1,
            statement_date=date(2025, 1, 31),
            total_income=12000.0,
            total_expenses=9000.0,
            net_income=3000.0,
            ytd_income=12000.0,
            ytd_expenses=9000.0,
            ytd_net_income=3000.0,
            assessment_income=10000.0,
            collection_rate=0.95,
        ),
        FinancialSnapshot(
            community_id="c-lakeside",
            year=2025,
            month=2,
            statement_date=date(2025, 2, 28),
            total_income=12000.0,
            total_expenses=11000.0,
            net_income=1000.0,
            ytd_income=24000.0,
            ytd_expenses=20000.0,
            ytd_net_income=4000.0,
            assessment_income=10000.0,
            collection_rate=None,
        ),
        FinancialSnapshot(
            community_id="c-lakeside",
            year=2025,
            month=4,
            statement_date=date(2025, 4, 30),
            expense_breakdown={
                "generalAdmin": {"month": 1000, "ytd": 4000},
                "maintenance": {"month": 1000, "ytd": 2000},
                "reserve": {"month": 200, "ytd": 800},
            },
            total_income=13000.0,
            total_expenses=10000.0,
            net_income=3000.0,
            ytd_income=50000.0,
            ytd_expenses=40000.0,
            ytd_net_income=10000.0,
            assessment_income=11000.0,
            collection_rate=0.975,
        ),
    ]
    for snapshot in snapshots:
        await financial_repository.upsert_snapshot(snapshot)
    return financial_repository


class TestCommunityRecords:
    @pytest.mark.asyncio
    async def test_community_info(self, handlers: DataFunctionHandlers) -> None:
        result = await handlers.get_community_info("c-lakeside")

        assert result["success"] is True
        data = result["data"]
        assert data["displayName"] == "Lakeside"
        assert data["propertyCode"] == "LKS"
        assert data["active"] is True

    @pytest.mark.asyncio
    async def test_unknown_community(self, handlers: DataFunctionHandlers) -> None:
        assert await handlers.get_community_info("c-nowhere") == {"error": "community_not_found"}
        assert await handlers.get_contract_dates("c-nowhere") == {"error": "community_not_found"}

    @pytest.mark.asyncio
    async def test_full_address_skips_blank_parts(self, handlers: DataFunctionHandlers) -> None:
        lakeside = (await handlers.get_community_address("c-lakeside"))["data"]
        oak = (await handlers.get_community_address("c-oak-ridge"))["data"]

        assert lakeside["fullAddress"] == "100 Shore Dr, Austin, TX, 78701"
        assert oak["fullAddress"] == "5 Ridge Rd, Suite 2, Dallas, TX, 75201"

    @pytest.mark.asyncio
    async def test_contract_dates(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_contract_dates("c-oak-ridge"))["data"]
        assert data["contractStart"] == "2022-06-01"
        assert data["contractEnd"] is None
        assert data["isActive"] is False

    @pytest.mark.asyncio
    async def test_management_fee_flags_are_booleans(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_management_fees("c-lakeside"))["data"]

        assert data["managementFee"] == 2500.0
        assert data["perUnitFee"] == 12.5
        assert data["boardApprovalRequired"] is True
        assert data["autoIncrease"] is False
        assert data["fixedCost"] is None

    @pytest.mark.asyncio
    async def test_missing_management_fee(self, handlers: DataFunctionHandlers) -> None:
        assert await handlers.get_management_fees("c-oak-ridge") == {"error": "no_management_fee_found"}

    @pytest.mark.asyncio
    async def test_board_members_officer_order(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_board_members("c-lakeside"))["data"]

        assert [m["fullName"] for m in data["boardMembers"]] == ["Zed Young", "Ann Adams", "Bea Brown"]
        assert data["boardMembers"][0]["position"] == "President"
        assert data["boardInfo"]["quorum"] == 3
        assert data["boardInfo"]["termLimits"] == "2 years"

    @pytest.mark.asyncio
    async def test_board_without_info(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_board_members("c-oak-ridge"))["data"]
        assert data["boardMembers"] == []
        assert data["boardInfo"] is None

    @pytest.mark.asyncio
    async def test_billing_information(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_billing_information("c-lakeside"))["data"]
        assert data["billingFrequency"] == "Monthly"
        assert data["coupon"] is True
        assert await handlers.get_billing_information("c-oak-ridge") == {"error": "no_billing_information_found"}


class TestInvoices:
    @pytest.mark.asyncio
    async def test_newest_first(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_invoices("c-lakeside"))["data"]

        assert [i["invoiceId"] for i in data["invoices"]] == ["inv-3", "inv-2", "inv-1"]
        assert data["totalCount"] == 3
        assert data["filteredCount"] == 3

    @pytest.mark.asyncio
    async def test_status_filter_is_case_insensitive(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_invoices("c-lakeside", status="paid", limit=1))["data"]

        assert [i["invoiceId"] for i in data["invoices"]] == ["inv-2"]
        assert data["totalCount"] == 3
        assert data["filteredCount"] == 1

    @pytest.mark.asyncio
    async def test_invoice_details_with_ordered_charges(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_invoice_details("inv-3"))["data"]

        assert data["communityId"] == "c-lakeside"
        assert data["status"] == "Open"
        assert [c["description"] for c in data["charges"]] == ["Management fee", "Postage"]

    @pytest.mark.asyncio
    async def test_unknown_invoice(self, handlers: DataFunctionHandlers) -> None:
        assert await handlers.get_invoice_details("inv-404") == {"error": "invoice_not_found"}


class TestFeesAndStakeholders:
    @pytest.mark.asyncio
    async def test_fee_structure(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_fee_structure("c-lakeside"))["data"]

        assert data["managementFee"]["managementFee"] == 2500.0
        assert data["feeVariances"][0]["feeName"] == "Resale Certificate"
        assert data["feeVariances"][0]["customAmount"] == 300.0
        assert data["commitmentFees"][0]["commitmentType"] == "Meetings"

    @pytest.mark.asyncio
    async def test_fee_structure_without_management_fee(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_fee_structure("c-oak-ridge"))["data"]
        assert data["managementFee"] is None
        assert data["feeVariances"] == []

    @pytest.mark.asyncio
    async def test_commitment_fees(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_commitment_fees("c-lakeside"))["data"]
        assert data["commitmentFees"] == [
            {
                "commitmentType": "Meetings",
                "entryType": "Included",
                "feeName": "Board meetings",
                "value": 4.0,
                "notes": "Per year",
            }
        ]

    @pytest.mark.asyncio
    async def test_stakeholders_all_and_by_type(self, handlers: DataFunctionHandlers) -> None:
        everyone = (await handlers.get_stakeholders("c-lakeside"))["data"]
        vendors = (await handlers.get_stakeholders("c-lakeside", "Vendor"))["data"]

        assert everyone["stakeholderType"] == "all"
        assert everyone["count"] == 4
        assert vendors["count"] == 1
        assert vendors["stakeholders"][0]["fullName"] == "Pool Pros LLC"


class TestFinancialAnalytics:
    @pytest.mark.asyncio
    async def test_summary(self, handlers: DataFunctionHandlers, seeded_financials) -> None:
        data = (await handlers.get_financial_summary("c-lakeside", 2025))["data"]

        assert [m["month"] for m in data["months"]] == [1, 2, 4]
        assert data["months"][0]["date"] == "2025-01-31"
        assert data["summary"]["totalYTDIncome"] == 50000.0
        assert data["summary"]["avgMonthlyExpenses"] == pytest.approx(10000.0)
        assert data["summary"]["monthsWithData"] == 3

    @pytest.mark.asyncio
    async def test_summary_without_data(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_financial_summary("c-lakeside", 2019))["data"]
        assert data["message"] == "No financial data found for this year"
        assert data["months"] == []

    @pytest.mark.asyncio
    async def test_expense_analysis_category(self, handlers: DataFunctionHandlers, seeded_financials) -> None:
        data = (await handlers.get_expense_analysis("c-lakeside", 2025, category="maintenance"))["data"]

        assert data["category"] == "maintenance"
        assert data["expenses"][-1]["expenses"] == {"month": 1000, "ytd": 2000}
        assert data["expenses"][0]["expenses"] == {}
        assert data["summary"]["totalYTDExpenses"] == 40000.0

    @pytest.mark.asyncio
    async def test_budget_recommendations(self, handlers: DataFunctionHandlers, seeded_financials) -> None:
        data = (await handlers.get_budget_recommendations("c-lakeside", 2025))["data"]

        assert data["budgetYear"] == 2026
        assert data["monthsElapsed"] == 4
        assert data["avgMonthlyExpense"] == pytest.approx(10000.0)
        by_category = {r["category"]: r for r in data["recommendations"]}
        assert by_category["General/Admin"]["recommendedBudget"] == pytest.approx(12300.0)
        assert by_category["Maintenance"]["recommendedBudget"] == pytest.approx(6120.0)
        assert by_category["Maintenance"]["reason"] == "Significant variance detected, adding buffer"
        assert by_category["Reserve"]["recommendedBudget"] == pytest.approx(2472.0)
        assert data["summary"]["totalProjectedAnnual"] == pytest.approx(20400.0)
        assert data["summary"]["recommendation"] == "Standard 2-3% increase recommended"

    @pytest.mark.asyncio
    async def test_budget_without_data(self, handlers: DataFunctionHandlers) -> None:
        data = (await handlers.get_budget_recommendations("c-oak-ridge", 2025, 2027))["data"]
        assert data["budgetYear"] == 2027
        assert data["recommendations"] == []

    @pytest.mark.asyncio
    async def test_collection_rate(self, handlers: DataFunctionHandlers, seeded_financials) -> None:
        data = (await handlers.get_collection_rate("c-lakeside", 2025))["data"]

        assert [r["month"] for r in data["collectionRates"]] == [4, 2, 1]
        assert data["summary"]["latestCollectionRate"] == "97.50"
        assert data["summary"]["monthsWithData"] == 2
        assert data["summary"]["avgCollectionRatePercent"] == "96.25"

    @pytest.mark.asyncio
    async def test_zero_collection_rate_is_reported(
        self, handlers: DataFunctionHandlers, financial_repository: SQLiteFinancialRepository
    ) -> None:
        await financial_repository.upsert_snapshot(
            FinancialSnapshot(
                community_id="c-oak-ridge",
                year=2025,
                month=3,
                statement_date=date(2025, 3, 31),
                collection_rate=0.0,
            )
        )

        data = (await handlers.get_collection_rate("c-oak-ridge", 2025))["data"]

        assert data["collectionRates"][0]["collectionRatePercent"] == "0.00"
        assert data["summary"]["monthsWithData"] == 1
        assert data["summary"]["avgCollectionRatePercent"] == "0.00"
        assert data["summary"]["latestCollectionRate"] == "0.00"

    @pytest.mark.asyncio
    async def test_budget_accepts_formatted_amounts(
        self, handlers: DataFunctionHandlers, financial_repository: SQLiteFinancialRepository
    ) -> None:
        await financial_repository.upsert_snapshot(
            FinancialSnapshot(
                community_id="c-oak-ridge",
                year=2025,
                month=4,
                statement_date=date(2025, 4, 30),
                expense_breakdown={
                    "generalAdmin": {"month": "1,000", "ytd": "4,000.00"},
                    "maintenance": {"month": "$1,000.00", "ytd": "2,000"},
                    "reserve": {"month": "200", "ytd": "$800"},
                },
                ytd_expenses=40000.0,
            )
        )

        result = await handlers.get_budget_recommendations("c-oak-ridge", 2025)

        assert result["success"] is True
        by_category = {r["category"]: r for r in result["data"]["recommendations"]}
        assert by_category["General/Admin"]["currentYTD"] == pytest.approx(4000.0)
        assert by_category["General/Admin"]["recommendedBudget"] == pytest.approx(12300.0)
        assert by_category["Maintenance"]["recommendedBudget"] == pytest.approx(6120.0)
        assert by_category["Reserve"]["recommendedBudget"] == pytest.approx(2472.0)

    @pytest.mark.asyncio
    async def test_budget_treats_unreadable_amounts_as_zero(
        self, handlers: DataFunctionHandlers, financial_repository: SQLiteFinancialRepository
    ) -> None:
        await financial_repository.upsert_snapshot(
            FinancialSnapshot(
                community_id="c-oak-ridge",
                year=2025,
                month=2,
                statement_date=date(2025, 2, 28),
                expense_breakdown={"generalAdmin": {"month": "n/a", "ytd": "see note"}},
            )
        )

        result = await handlers.get_budget_recommendations("c-oak-ridge", 2025)

        assert result["success"] is True
        (only,) = result["data"]["recommendations"]
        assert only["currentYTD"] == 0.0
        assert only["recommendedBudget"] == 0.0
