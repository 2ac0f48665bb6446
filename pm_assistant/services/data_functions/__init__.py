"""Read-only structured lookups the conversational model can call.

- **catalog** -- the published function definitions (name, description,
  JSON schema).
- **handlers** -- the lookups against the operational store and the
  financial snapshots.
- **registry** -- dispatch by name, argument checks and error payloads.
"""

from pm_assistant.services.data_functions.catalog import FUNCTION_CATALOG
from pm_assistant.services.data_functions.handlers import DataFunctionHandlers
from pm_assistant.services.data_functions.registry import FunctionRegistry

__all__ = ["FUNCTION_CATALOG", "DataFunctionHandlers", "FunctionRegistry"]
