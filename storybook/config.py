"""
Configuration and settings for the storybook backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGINS = [
    "https://bharat-story-admin-v2.vercel.app",
    "http://localhost:5173",
    "https://darkgreen-guanaco-940547.hostingersite.com",
    "https://bharatstorybooks.com",
    "https://www.bharatstorybooks.com",
]


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # All stories live in one document keyed by this locale tag.
    locale_key: str = Field(default="Eng")
    default_languages: List[str] = Field(default_factory=lambda: ["en", "te"])

    # Database (any SQLAlchemy URL; Postgres in production)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage for uploaded images
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Image URLs are built as <public_base_url>/<uuid><ext> when set.
    public_base_url: Optional[str] = Field(
        default="https://bharatstorybooks.com/uploads"
    )
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, gt=0)

    # Auth
    jwt_secret: Optional[str] = Field(default=None)
    jwt_expires_seconds: int = Field(default=24 * 60 * 60, gt=0)
    auth_enabled: bool = Field(default=True)

    cors_origins: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS)
    )

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
