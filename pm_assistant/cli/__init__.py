"""Operator command-line tools.

- ``python -m pm_assistant.cli pending`` -- index every PDF that needs work
- ``python -m pm_assistant.cli document ID`` -- index one document
- ``python -m pm_assistant.cli reset-failed`` -- flag failed documents for re-indexing
- ``python -m pm_assistant.cli stats`` -- vector store statistics
- ``python -m pm_assistant.cli chat MESSAGE`` -- ask the assistant a question

All commands use argparse and build their services through
``pm_assistant.main.build_services``; heavy imports are deferred until a
command runs.
"""
