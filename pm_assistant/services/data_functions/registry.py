"""Dispatch of model-requested function calls.

:class:`FunctionRegistry` binds each catalog entry to a handler method and
converts every outcome into a JSON-ready payload the model can read.  A
failing call never raises; it yields ``{"error": code, "message": ...}``:

- ``unknown_function``: name not in the registry
- ``invalid_arguments``: a required argument is missing or has a bad type
- ``query_failed``: the backing store failed
- ``execution_failed``: anything else raised by the handler
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import structlog

from pm_assistant.models.conversation import FunctionDefinition
from pm_assistant.services.data_functions.catalog import FUNCTION_CATALOG
from pm_assistant.services.data_functions.handlers import DataFunctionHandlers, Payload
from pm_assistant.utils.errors import ConfigurationError, FunctionExecutionError, StoreError

logger = structlog.get_logger(logger_name=__name__)

_Binding = Callable[[dict[str, Any]], Awaitable[Payload]]


def _required(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise FunctionExecutionError(
            message=f"Missing required argument: {key}",
            code="invalid_arguments",
        )
    return value.strip()


def _optional_int(args: dict[str, Any], key: str) -> int | None:
    value = args.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise FunctionExecutionError(
            message=f"Argument {key} must be a number, got {value!r}",
            code="invalid_arguments",
        ) from exc


def _optional_str(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    return str(value) if value else None


class FunctionRegistry:
    """Executes catalog functions by name.

    Parameters
    ----------
    handlers:
        The lookups behind the catalog.
    catalog:
        Definitions published to the model.  Defaults to
        :data:`FUNCTION_CATALOG`.
    """

    def __init__(
        self,
        handlers: DataFunctionHandlers,
        catalog: list[FunctionDefinition] | None = None,
    ) -> None:
        self._catalog = list(catalog if catalog is not None else FUNCTION_CATALOG)
        h = handlers
        self._bindings: dict[str, _Binding] = {
            "get_community_info": lambda a: h.get_community_info(_required(a, "communityId")),
            "get_community_address": lambda a: h.get_community_address(_required(a, "communityId")),
            "get_management_fees": lambda a: h.get_management_fees(_required(a, "communityId")),
            "get_board_members": lambda a: h.get_board_members(_required(a, "communityId")),
            "get_billing_information": lambda a: h.get_billing_information(_required(a, "communityId")),
            "get_invoices": lambda a: h.get_invoices(
                _required(a, "communityId"),
                status=_optional_str(a, "status"),
                limit=_optional_int(a, "limit"),
            ),
            "get_invoice_details": lambda a: h.get_invoice_details(_required(a, "invoiceId")),
            "get_fee_structure": lambda a: h.get_fee_structure(_required(a, "communityId")),
            "get_commitment_fees": lambda a: h.get_commitment_fees(_required(a, "communityId")),
            "get_stakeholders": lambda a: h.get_stakeholders(
                _required(a, "communityId"),
                stakeholder_type=_optional_str(a, "stakeholderType"),
            ),
            "get_contract_dates": lambda a: h.get_contract_dates(_required(a, "communityId")),
            "get_financial_summary": lambda a: h.get_financial_summary(
                _required(a, "communityId"),
                year=_optional_int(a, "year"),
            ),
            "get_expense_analysis": lambda a: h.get_expense_analysis(
                _required(a, "communityId"),
                year=_optional_int(a, "year"),
                category=_optional_str(a, "category"),
            ),
            "get_budget_recommendations": lambda a: h.get_budget_recommendations(
                _required(a, "communityId"),
                current_year=_optional_int(a, "currentYear"),
                budget_year=_optional_int(a, "budgetYear"),
            ),
            "get_collection_rate": lambda a: h.get_collection_rate(
                _required(a, "communityId"),
                year=_optional_int(a, "year"),
            ),
        }

    def definitions(self) -> list[FunctionDefinition]:
        """Return the catalog published to the model."""
        return list(self._catalog)

    def names(self) -> list[str]:
        return [d.name for d in self._catalog]

    def validate(self) -> None:
        """Check that catalog and handlers describe the same functions.

        Raises
        ------
        ConfigurationError
            If a published function has no handler or a handler is not
            published.
        """
        published = {d.name for d in self._catalog}
        bound = set(self._bindings)
        missing = sorted(published - bound)
        unpublished = sorted(bound - published)
        if missing or unpublished:
            raise ConfigurationError(
                message=(
                    f"Function catalog and handlers disagree: "
                    f"no handler for {missing}, not published: {unpublished}"
                ),
            )
        logger.debug("function_registry_validated", functions=len(published))

    async def execute(self, name: str, arguments: dict[str, Any] | None) -> Payload:
        """Run function *name* with *arguments* and return its payload."""
        binding = self._bindings.get(name)
        if binding is None or name not in self.names():
            logger.warning("function_unknown", function=name)
            return {"error": "unknown_function", "message": f"Unknown function: {name}"}

        args = arguments or {}
        try:
            result = await binding(args)
        except FunctionExecutionError as exc:
            logger.warning("function_failed", function=name, code=exc.code, error=exc.message)
            return {"error": exc.code, "message": exc.message}
        except StoreError as exc:
            logger.error("function_query_failed", function=name, error=str(exc))
            return {"error": "query_failed", "message": exc.message}
        except Exception as exc:
            logger.error("function_execution_failed", function=name, error=str(exc))
            return {"error": "execution_failed", "message": str(exc)}

        logger.info("function_executed", function=name, success="error" not in result)
        return result
