"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide settings, populated from ``DOCRAG_*`` env vars."""

    # Embedding provider
    embedding_api_key: str = Field(
        default="",
        description=(
            "Provider credential. Keys carrying ``direct_key_prefix`` are sent as "
            "bearer tokens; any other key is exchanged for an access token."
        ),
    )
    embedding_secret_key: str = Field(
        default="", description="Secret paired with the key for token exchange"
    )
    embedding_model: str = "embedding-v1"
    direct_embedding_url: str = "https://qianfan.baidubce.com/v2/embeddings"
    token_url: str = "https://aip.baidubce.com/oauth/2.0/token"
    compatible_base_url: str = "https://qianfan.baidubce.com/v2"
    direct_key_prefix: str = "bce-v3/"
    request_timeout_seconds: float = 30.0

    # Provider rate limits
    batch_max_count: int = Field(default=5, description="Texts per embedding request")
    batch_max_length: int = Field(default=400, description="Characters per embedding request")
    batch_delay_seconds: float = Field(default=0.2, description="Pause between batches")

    # Chunking
    chunk_soft_limit: int = 800
    chunk_hard_limit: int = 1000

    # Storage / retrieval
    database_path: str = "vector-db/documents.db"
    default_top_k: int = 3

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DOCRAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_limits(self) -> Settings:
        if self.chunk_hard_limit <= self.chunk_soft_limit:
            raise ValueError("chunk_hard_limit must be greater than chunk_soft_limit")
        if self.batch_max_count < 1 or self.batch_max_length < 1:
            raise ValueError("batch limits must be positive")
        if self.batch_delay_seconds < 0:
            raise ValueError("batch_delay_seconds must not be negative")
        return self

    @property
    def uses_direct_key(self) -> bool:
        """True when the configured key selects the direct-key strategy."""
        return self.embedding_api_key.startswith(self.direct_key_prefix)


# Singleton: import `settings` wherever needed.
settings = Settings()
