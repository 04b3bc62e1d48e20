"""
Configuration settings for the batch rotator.

Uses Pydantic Settings to load environment variables for the MongoDB
connection, the rotation schedule, retry policy and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATABASE_URI = "mongodb://localhost:27017"
_MASKED_PREFIX_LENGTH = 10


class Settings(BaseSettings):
    # Database
    database_uri: str = Field(DEFAULT_DATABASE_URI, alias="DATABASE_URI")
    database_name: str = Field("twitter", alias="DATABASE_NAME")
    collection_name: str = Field("tokens", alias="TOKENS_COLLECTION")
    server_selection_timeout_ms: int = Field(5000, alias="SERVER_SELECTION_TIMEOUT_MS", gt=0)

    # Rotation schedule
    rotation_interval_seconds: float = Field(8.0, alias="ROTATION_INTERVAL_SECONDS", gt=0)
    rotation_cycle_size: int = Field(3, alias="ROTATION_CYCLE_SIZE", ge=1)
    rotation_start_batch: Optional[int] = Field(None, alias="ROTATION_START_BATCH", ge=1)
    rotation_retry_attempts: int = Field(3, alias="ROTATION_RETRY_ATTEMPTS", ge=1)
    rotation_retry_backoff_seconds: float = Field(
        1.0, alias="ROTATION_RETRY_BACKOFF_SECONDS", ge=0
    )

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_uri_configured(self) -> bool:
        """True when the URI came from the environment rather than the default."""
        return "database_uri" in self.model_fields_set

    @property
    def masked_database_uri(self) -> str:
        return mask_uri(self.database_uri)


def mask_uri(uri: str) -> str:
    """
    Keep only a short prefix of a connection string so credentials never reach logs.
    """
    return f"{uri[:_MASKED_PREFIX_LENGTH]}..."


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["DEFAULT_DATABASE_URI", "Settings", "get_settings", "mask_uri"]
