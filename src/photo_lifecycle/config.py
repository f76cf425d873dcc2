"""Application configuration."""

import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    cron_secret: str
    storage_bucket: str = "photos"
    backend: Literal["supabase", "local"] = "supabase"
    local_data_dir: str = "./local_data"
    cache_dir: str = "./.image_cache"
    cache_max_disk_bytes: int = 200 * 1024 * 1024
    cache_thumbnail_slots: int = 100
    cache_full_slots: int = 20
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
