"""Configuration module -- exports Settings, load_config, and a module-level singleton."""

from pm_assistant.config.loader import load_config
from pm_assistant.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_config", "settings"]
