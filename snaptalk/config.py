"""
Runtime configuration helpers for the SnapTalk API.

Loads DATABASE_URL, token settings, CORS origins and object storage
credentials from the environment or the ``.env`` file in the project root.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Final

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class MissingSecretError(RuntimeError):
    """Raised when a required secret environment variable is not set."""


_PLACEHOLDER_VALUES: Final[set[str]] = {
    "changeme",
    "change-me",
    "placeholder",
    "your-secret-here",
    "your_jwt_secret",
}


def is_placeholder(value: str | None) -> bool:
    if not value:
        return True
    normalized = value.strip().lower()
    return not normalized or normalized in _PLACEHOLDER_VALUES


def require_secret(name: str) -> str:
    """Return a trimmed secret value or raise :class:`MissingSecretError`."""

    value = os.getenv(name)
    if is_placeholder(value):
        raise MissingSecretError(f"Environment variable {name} is required and must not use placeholder defaults")
    return value.strip()


class Settings(BaseSettings):
    # Required; must come from the environment or .env
    database_url: str = Field(..., alias="DATABASE_URL")

    app_name: str = Field(default="SnapTalk API", alias="APP_NAME")
    api_version: str = Field(default="1.0.0", alias="API_VERSION")

    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expires_minutes: int = Field(default=60 * 24 * 7, alias="JWT_EXPIRES_MINUTES")

    frontend_url: str | None = Field(default=None, alias="FRONTEND_URL")
    cors_origins: str | None = Field(default=None, alias="CORS_ORIGINS")

    media_s3_endpoint: str | None = Field(default=None, alias="MEDIA_S3_ENDPOINT")
    media_s3_region: str | None = Field(default=None, alias="MEDIA_S3_REGION")
    media_s3_bucket: str | None = Field(default=None, alias="MEDIA_S3_BUCKET")
    media_public_base_url: str | None = Field(default=None, alias="MEDIA_PUBLIC_BASE_URL")
    media_max_file_bytes: int = Field(default=10 * 1024 * 1024, alias="MEDIA_MAX_FILE_BYTES")
    media_max_files: int = Field(default=5, alias="MEDIA_MAX_FILES")

    log_level: str = Field(default="info", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def allowed_origins(self) -> list[str]:
        """Origins accepted by CORS, mirroring the frontend URL plus local development."""

        if self.cors_origins:
            return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
        origins = [self.frontend_url, "http://localhost:3000"]
        return [origin for origin in origins if origin]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["MissingSecretError", "Settings", "get_settings", "is_placeholder", "require_secret"]
