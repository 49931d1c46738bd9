"""Application configuration."""

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

DEFAULT_BASE_URL = "https://api.nal.usda.gov/fdc/v1/"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    usda_api_key: str
    usda_api_base_url: str = DEFAULT_BASE_URL
    max_concurrent_requests: int = Field(default=1, ge=1)
    min_request_interval_ms: int = Field(default=400, ge=0)
    max_retries: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=750, ge=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("usda_api_base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else f"{value}/"


def describe_environment(settings: Settings) -> str:
    """Summarise the active configuration as markdown."""
    key_status = (
        "USDA_API_KEY detected in environment."
        if settings.usda_api_key
        else "USDA_API_KEY missing, upstream calls will be rejected."
    )
    return "\n".join(
        [
            "# USDA FoodData Central Gateway Environment",
            "",
            f"- Base URL: {settings.usda_api_base_url}",
            f"- API key mode: {key_status}",
            (
                f"- Request policy: up to {settings.max_concurrent_requests} "
                f"concurrent USDA calls with >= {settings.min_request_interval_ms}ms "
                f"spacing and up to {settings.max_retries} exponential backoff "
                "retries on HTTP 429/5xx or timeouts."
            ),
            (
                f"- Timeout: each request aborts after "
                f"{settings.request_timeout_seconds:g}s."
            ),
            "",
            "Set USDA_API_BASE_URL to point at a proxy or alternate API host.",
        ]
    )
