"""
Application configuration using Pydantic Settings.

Centralizes all environment variables and app settings.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    All sensitive/configurable values should live here.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars not defined here
    )

    # Application
    app_name: str = "Document Ingestion API"
    debug: bool = False
    log_level: str = "INFO"

    # Persistence - "memory" keeps everything in process, "mongo" uses Beanie/Motor
    storage_backend: Literal["memory", "mongo"] = "memory"
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "docingest"

    # Bearer token validation (tokens are issued elsewhere)
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"

    @field_validator("jwt_secret", mode="before")
    @classmethod
    def strip_jwt_secret(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not isinstance(v, str):
            return v
        return v.strip() or None

    # File upload - local storage path
    upload_dir: str = "uploads/documents"
    max_upload_size_mb: int = 50

    # Seconds to let running ingestions finish on shutdown
    shutdown_grace_seconds: float = 10.0


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    Using lru_cache avoids re-reading .env on every request.
    """
    return Settings()
