"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database (unset -> in-memory stores)
    database_url: str | None = None

    # Cache / realtime fan-out
    redis_url: str | None = None

    # Blob storage (unset -> in-memory blobs)
    blob_root: str | None = None
    blob_public_base_url: str | None = None
    upload_chunk_bytes: int = 64 * 1024
    max_upload_bytes: int = 25 * 1024 * 1024

    # Vector index (unset -> in-memory index)
    qdrant_url: str | None = None
    qdrant_api_key: SecretStr | None = None
    qdrant_collection: str = "docchat_chunks"

    # LLM
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    retrieval_top_k: int = 4
    chunk_max_chars: int = 1000
    chunk_overlap_chars: int = 200

    # Quota (questions per document)
    free_question_limit: int = 3
    pro_question_limit: int = 100

    # Timeouts (milliseconds)
    completion_timeout_ms: int = 30000

    # Realtime chat polling when redis is not configured (milliseconds)
    chat_poll_interval_ms: int = 500


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
