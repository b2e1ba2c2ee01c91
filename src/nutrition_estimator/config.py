"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str
    openai_base_url: str | None = None
    text_model: str = "google/gemini-2.5-flash"
    primary_vision_model: str = "google/gemini-2.5-flash"
    secondary_vision_model: str = "anthropic/claude-3.5-sonnet"
    multi_model_enabled: bool = False
    primary_vision_timeout_seconds: float = 25.0
    secondary_vision_timeout_seconds: float = 20.0
    text_timeout_seconds: float = 25.0
    fdc_api_key: str | None = None
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    fdc_timeout_seconds: float = 15.0
    outlier_detection_enabled: bool = True
    outlier_auto_correct: bool = True
    max_foods_per_image: int = 25
    rate_limit_window_seconds: int = 900
    rate_limit_max_requests: int = 20
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_client_ip(forwarded_for: str | None, fallback: str | None) -> str:
    """Return the originating client IP from an X-Forwarded-For header."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return fallback or "unknown"
