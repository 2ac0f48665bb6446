"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first) environment variables, the
project-root ``.env`` file, then the defaults below.  Field ``openai_api_key``
maps to ``OPENAI_API_KEY`` and so on; an empty string means "not configured".
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """pm-assistant application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Model Providers ===
    # main.py selects Anthropic first, then OpenAI; an empty key skips a provider.
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    model_timeout_seconds: float = 60.0

    # === Vector Store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "pm_documents"

    # === Operational Store / Documents ===
    database_path: str = "data/pm_assistant.db"
    document_storage_root: str = "data/documents"
    document_storage_base_url: str = ""  # when set, documents are fetched over HTTP

    # === Indexing ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    indexing_batch_size: int = 5

    # === Retrieval / Conversation ===
    retrieval_limit: int = 5
    chat_max_iterations: int = 5
    chat_max_tokens: int = 1024
    chat_max_message_length: int = 2000
    model_input_cost_per_million: float = 3.0
    model_output_cost_per_million: float = 15.0
    community_cache_ttl_seconds: int = 300

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the model provider names that have non-empty API keys, in priority order."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        return providers
