"""Function catalog published to the conversational model.

Each entry is a :class:`FunctionDefinition` whose ``input_schema`` is a
JSON Schema object.  Parameter names are camelCase because the model sees
them verbatim and they mirror the keys of the returned payloads.
"""

from __future__ import annotations

from typing import Any

from pm_assistant.models.conversation import FunctionDefinition

_COMMUNITY_ID = {
    "type": "string",
    "description": "The unique identifier (GUID) of the community.",
}


def _community_schema(**extra: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"communityId": _COMMUNITY_ID, **extra},
        "required": ["communityId"],
    }


FUNCTION_CATALOG: list[FunctionDefinition] = [
    FunctionDefinition(
        name="get_community_info",
        description=(
            "Get general information about a community: property code, display and "
            "legal names, address, active flag, client type and service type."
        ),
        input_schema=_community_schema(),
    ),
    FunctionDefinition(
        name="get_community_address",
        description="Get the mailing address of a community, including a formatted full address.",
        input_schema=_community_schema(),
    ),
    FunctionDefinition(
        name="get_management_fees",
        description=(
            "Get the management fee arrangement for a community: fee amount, per-unit fee, "
            "fee type, increase rules and whether board approval is required."
        ),
        input_schema=_community_schema(),
    ),
    FunctionDefinition(
        name="get_board_members",
        description=(
            "Get the board of directors for a community with officer positions and contact "
            "details, plus meeting frequency, quorum and term limit settings."
        ),
        input_schema=_community_schema(),
    ),
    FunctionDefinition(
        name="get_billing_information",
        description="Get the assessment billing settings for a community: frequency, billing month/day and notices.",
        input_schema=_community_schema(),
    ),
    FunctionDefinition(
        name="get_invoices",
        description="List invoices for a community, newest first, optionally filtered by status.",
        input_schema=_community_schema(
            status={
                "type": "string",
                "enum": ["Draft", "Sent", "Paid", "Overdue", "Cancelled", "Void"],
                "description": "Only return invoices with this status.",
            },
            limit={
                "type": "number",
                "description": "Maximum number of invoices to return.",
            },
        ),
    ),
    FunctionDefinition(
        name="get_invoice_details",
        description="Get one invoice with its individual charges.",
        input_schema={
            "type": "object",
            "properties": {
                "invoiceId": {
                    "type": "string",
                    "description": "The unique identifier (GUID) of the invoice.",
                },
            },
            "required": ["invoiceId"],
        },
    ),
    FunctionDefinition(
        name="get_fee_structure",
        description=(
            "Get the complete fee structure of a community: management fee, community-specific "
            "fee variances and commitment fees."
        ),
        input_schema=_community_schema(),
    ),
    FunctionDefinition(
        name="get_commitment_fees",
        description="Get the commitment fees configured for a community.",
        input_schema=_community_schema(),
    ),
    FunctionDefinition(
        name="get_stakeholders",
        description="List the stakeholders of a community (residents, staff, vendors, board members).",
        input_schema=_community_schema(
            stakeholderType={
                "type": "string",
                "enum": ["Resident", "Staff", "Vendor", "Board Member"],
                "description": "Only return stakeholders of this type.",
            },
        ),
    ),
    FunctionDefinition(
        name="get_contract_dates",
        description="Get the management contract start and end dates of a community.",
        input_schema=_community_schema(),
    ),
    FunctionDefinition(
        name="get_financial_summary",
        description=(
            "Get monthly income, expenses and net income for a year, with year-to-date totals, "
            "monthly averages, assessment income and collection rates."
        ),
        input_schema=_community_schema(
            year={"type": "number", "description": "Statement year. Defaults to the current year."},
        ),
    ),
    FunctionDefinition(
        name="get_expense_analysis",
        description=(
            "Break a year's expenses down by month into general/admin, maintenance and reserve, "
            "optionally focusing on one category."
        ),
        input_schema=_community_schema(
            year={"type": "number", "description": "Statement year. Defaults to the current year."},
            category={
                "type": "string",
                "enum": ["generalAdmin", "maintenance", "reserve"],
                "description": "Expense category to focus on.",
            },
        ),
    ),
    FunctionDefinition(
        name="get_budget_recommendations",
        description=(
            "Project annual expenses from year-to-date figures and recommend next year's "
            "budget per expense category."
        ),
        input_schema=_community_schema(
            currentYear={"type": "number", "description": "Year to analyse. Defaults to the current year."},
            budgetYear={"type": "number", "description": "Year to budget for. Defaults to currentYear + 1."},
        ),
    ),
    FunctionDefinition(
        name="get_collection_rate",
        description="Get monthly assessment collection rates for a year, latest month first, with the average.",
        input_schema=_community_schema(
            year={"type": "number", "description": "Statement year. Defaults to the current year."},
        ),
    ),
]
