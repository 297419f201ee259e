from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Trip Ingress API"
    app_version: str = "1.0.0"
    database_url: str = "sqlite:///./tripdata.db"
    ingestion_batch_size: int = 1000
    max_upload_bytes: int = 200 * 1024 * 1024
    default_page_limit: int = 20
    max_page_limit: int = 200
    map_points_limit: int = 20000
    environment: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"

    @field_validator("ingestion_batch_size", "max_page_limit", "map_points_limit")
    @classmethod
    def ensure_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
