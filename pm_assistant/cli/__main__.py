"""Allow ``python -m pm_assistant.cli`` execution."""

import sys

from pm_assistant.cli.commands import main

sys.exit(main())
