"""
BEACON Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or a ``.env`` file
and every field has a default, so importing this module never fails.
"""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class BeaconSettings(BaseSettings):
    """
    Application settings with environment variable binding.

    Groups:
        Database: POSTGRES_* (only used when VECTOR_BACKEND=pgvector).
        Providers: OPENAI_API_KEY, OLLAMA_BASE_URL, BRAVE_API_KEY.
        Models: EMBEDDING_*, LIGHT_MODEL, HEAVY_MODEL, MAX_TOKENS.
        Pipeline: CHUNK_SIZE, CHUNK_OVERLAP, EMBED_DELAY_SECONDS,
            MAX_QUERY_LENGTH, KEYWORDS_PATH.
    """

    PROJECT_NAME: str = "BEACON Assistant"
    ENVIRONMENT: str = "local"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_USER: str = "beacon"
    POSTGRES_PASSWORD: str = "beacon_password"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "beacon_db"

    # Storage backends
    VECTOR_BACKEND: Literal["memory", "pgvector"] = "memory"

    # Embeddings
    EMBEDDING_PROVIDER: Literal["openai", "local"] = "openai"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSION: int = 1536
    LOCAL_EMBEDDING_MODEL: str = "all-MiniLM-L6-v2"
    LOCAL_EMBEDDING_DIMENSION: int = 384
    OPENAI_API_KEY: str | None = None

    # Generation
    GENERATION_PROVIDER: Literal["openai", "ollama"] = "openai"
    OLLAMA_BASE_URL: str = "http://host.docker.internal:11434"
    LIGHT_MODEL: str = "gpt-4o-mini"
    HEAVY_MODEL: str = "gpt-4o"
    MAX_TOKENS: int = 4096
    GENERATION_TIMEOUT: float = 60.0

    # Web search (Brave)
    BRAVE_API_KEY: str | None = None
    BRAVE_BASE_URL: str = "https://api.search.brave.com/res/v1/web/search"
    SEARCH_TIMEOUT: float = 10.0

    # Pipeline
    CHUNK_SIZE: int = 800
    CHUNK_OVERLAP: int = 100
    EMBED_DELAY_SECONDS: float = 0.1
    MAX_QUERY_LENGTH: int = 1000
    KEYWORDS_PATH: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def DATABASE_URL(self) -> str:
        """Async PostgreSQL connection string using asyncpg driver."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = BeaconSettings()
