"""Typed settings configuration - single source of truth."""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Generative backend
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    openai_image_model: str = "gpt-image-1"

    # Pipeline pacing (seconds)
    facet_delay_seconds: float = 1.2
    image_delay_seconds: float = 1.5

    # Storage
    storage_backend: Literal["memory", "redis"] = "memory"
    redis_url: str | None = None
    # Roughly what a browser grants one origin for local storage
    storage_capacity_chars: int = 5_000_000

    # Sharing
    share_base_url: str = "http://localhost:8000/"
    share_query_param: str = "tripId"

    # Display
    currency: str = "INR"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
