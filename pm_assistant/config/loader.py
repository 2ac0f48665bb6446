"""YAML configuration loader with environment variable overrides.

Layers, later overriding earlier:

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

_deep_merge merges nested dicts key by key:
  base = {"indexing": {"chunk_size": 1000}}
  overrides = {"indexing": {"batch_size": 5}}
  result = {"indexing": {"chunk_size": 1000, "batch_size": 5}}
"""

from pathlib import Path

import yaml

from pm_assistant.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to take overrides from; a fresh one is
                  built from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "anthropic_model": settings.anthropic_model,
            "available_providers": settings.get_available_llm_providers(),
        },
        "vector_store": {
            "persist_dir": settings.chromadb_persist_dir,
            "collection": settings.chromadb_collection,
        },
        "indexing": {
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            "batch_size": settings.indexing_batch_size,
        },
        "conversation": {
            "max_iterations": settings.chat_max_iterations,
            "max_tokens": settings.chat_max_tokens,
            "retrieval_limit": settings.retrieval_limit,
            "pricing": {
                "input_per_million": settings.model_input_cost_per_million,
                "output_per_million": settings.model_output_cost_per_million,
            },
        },
        "community_directory": {
            "cache_ttl_seconds": settings.community_cache_ttl_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
