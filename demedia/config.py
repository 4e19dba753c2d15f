"""
Runtime configuration helpers for the DeMEDIA media service.

Loads DATABASE_URL and the media tuning knobs from the environment, falling
back to the .env file located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite+pysqlite:///./demedia.db", alias="DATABASE_URL")

    app_name: str = Field(default="DeMEDIA Media Service", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")

    # Server
    server_host: str = Field(default="0.0.0.0", alias="DEMEDIA_SERVER_HOST")
    server_port: int = Field(default=8000, alias="DEMEDIA_SERVER_PORT")
    server_reload: bool = Field(default=True, alias="UVICORN_RELOAD")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Image encoder
    image_max_width: int = Field(default=1200, alias="IMAGE_MAX_WIDTH")
    image_quality: float = Field(default=0.8, alias="IMAGE_QUALITY")
    image_max_size_kb: int = Field(default=500, alias="IMAGE_MAX_SIZE_KB")
    image_min_quality: float = Field(default=0.3, alias="IMAGE_MIN_QUALITY")
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # Caches
    photo_cache_retention_days: int = Field(default=7, alias="PHOTO_CACHE_RETENTION_DAYS")
    profile_cache_ttl_seconds: int = Field(default=3600, alias="PROFILE_CACHE_TTL_SECONDS")
    profile_redelivery_delay_ms: int = Field(default=100, alias="PROFILE_REDELIVERY_DELAY_MS")
    cleanup_interval_hours: int = Field(default=24, alias="CLEANUP_INTERVAL_HOURS")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
