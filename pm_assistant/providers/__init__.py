"""Concrete adapters for the interfaces in ``pm_assistant.interfaces``."""
