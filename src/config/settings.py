"""Application settings loaded from environment variables via pydantic-settings.

Values come from two sources, highest priority first:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. The ``.env`` file in the project root (local development only)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; defaults apply
when neither source sets a value.  ``.env`` is git-ignored, see
``.env.example`` for the available variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """FBK assistant application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Model backends (OpenAI or any OpenAI-compatible endpoint) ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # e.g. https://api.together.xyz/v1
    chat_model: str = "gpt-4o-mini"
    # Used for BOTH ingestion and query embedding.  Changing it requires
    # re-ingesting every document.
    embedding_model: str = "text-embedding-3-small"
    chat_temperature: float = 0.3
    chat_max_tokens: int = 1024

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "fbk_documents"
    database_path: str = "data/assistant.db"
    upload_dir: str = "data/uploads"

    # === Ingestion ===
    chunk_size: int = 800
    chunk_overlap: int = 150
    embed_batch_size: int = 20

    # === Retrieval / answering ===
    retrieval_top_k: int = 5
    retrieval_min_similarity: float = 0.45
    history_turns: int = 6
    history_fetch_limit: int = 10

    # === Admin ===
    # Empty = dev mode, admin routes are not guarded.
    admin_token: str = ""

    # === App Config ===
    cors_allowed_origins: list[str] = ["*"]
    config_path: str = "config/config.yaml"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def missing_required(self) -> list[str]:
        """Return the env var names of required settings that are unset."""
        missing: list[str] = []
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if not self.chat_model:
            missing.append("CHAT_MODEL")
        if not self.embedding_model:
            missing.append("EMBEDDING_MODEL")
        return missing
