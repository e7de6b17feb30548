"""
Configuration and settings for the distribution service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "CESTAS_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Query cache (Redis)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    cache_key_prefix: str = Field(default="cestas:cache", env="CACHE_KEY_PREFIX")
    cache_ttl_seconds: int = Field(default=300, env="CACHE_TTL_SECONDS")

    # Sessions
    session_ttl_hours: int = Field(default=12, env="SESSION_TTL_HOURS")

    # S3-compatible storage for archived reports
    cos_endpoint: Optional[str] = Field(default=None, env="COS_ENDPOINT")
    cos_region: Optional[str] = Field(default=None, env="COS_REGION")
    cos_bucket: Optional[str] = Field(default=None, env="COS_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )
    cos_key_prefix: str = Field(default="cestas", env="COS_KEY_PREFIX")
    report_url_expires_in: int = Field(default=3600, env="REPORT_URL_EXPIRES_IN")

    # Block expiry worker
    expiry_sweep_interval_seconds: int = Field(
        default=3600, env="EXPIRY_SWEEP_INTERVAL_SECONDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
