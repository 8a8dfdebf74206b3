"""
Configuration and settings for the Travel Book backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="")
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Database (any SQLAlchemy URL; Postgres expected in production)
    database_url: Optional[str] = Field(default=None)

    # Session tokens
    access_token_secret: Optional[str] = Field(default=None)
    access_token_ttl_hours: int = Field(default=72, ge=1)

    # S3-compatible storage for photos
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)
    image_folder: str = Field(default="travel_book")

    # Locally served assets (legacy uploads)
    uploads_dir: str = Field(default="uploads")
    placeholder_image_url: str = Field(
        default="https://github.com/Sahilll94/Travel-Book-Backend/blob/Updated-Branch/logo.png?raw=true"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @property
    def is_development(self) -> bool:
        return self.use_in_memory_backends or not self.database_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
