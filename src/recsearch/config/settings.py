"""
Configuration settings for recsearch.

Uses pydantic-settings for type-safe configuration from environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """recsearch configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # MongoDB Atlas
    mongodb_uri: SecretStr = Field(
        default=SecretStr("mongodb://localhost:27017/?directConnection=true"),
        description="MongoDB Atlas connection URI",
    )
    mongodb_database: str = Field(
        default="riskassessment",
        description="MongoDB database name",
    )
    mongodb_collection: str = Field(
        default="arcRecommendation",
        description="Collection holding recommendation records",
    )
    search_index_name: str = Field(
        default="default",
        description="Atlas Search index used by the search-relevance stage",
    )
    tenant_field: str = Field(
        default="submissionBaseNr",
        description="Document path holding the tenant key",
    )

    # Query settings
    query_timeout_ms: int | None = Field(
        default=10000,
        ge=1,
        description="Server-side deadline (maxTimeMS) per list/count/lookup operation",
    )
    server_selection_timeout_ms: int = Field(
        default=5000,
        ge=1,
        description="How long the driver waits for a reachable server",
    )
    last_row_policy: Literal["sentinel", "running_total"] = Field(
        default="sentinel",
        description="lastRow reported for a full page with more data behind it",
    )
    index_ready_timeout_s: float = Field(
        default=60.0,
        gt=0,
        description="Default wait for the search index to become queryable (CLI)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level for the recsearch loggers",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
