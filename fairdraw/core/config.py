"""Configuration management for the lottery draw service."""
from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = Field(default="Fairdraw Lottery Service")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://fairdraw:fairdraw@db:5432/fairdraw")

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    log_level: str = Field(default="INFO")
    logging_config_path: str | None = Field(default=None)

    jwt_algorithm: str = Field(default="HS256")
    jwt_secret_key: str = Field(default="change-me-in-production")

    role_service_url: str = Field(default="http://localhost:3005")
    role_service_timeout_seconds: float = Field(default=3.0)

    notification_service_url: str | None = Field(default=None)
    notification_timeout_seconds: float = Field(default=5.0)

    lottery_seed_bytes: int = Field(default=32, ge=16)
    lottery_seeded_shuffle: bool = Field(default=True)
    lottery_manual_draw_requires_end: bool = Field(default=False)
    lottery_default_end_time: str = Field(default="23:59:59")

    auto_disburse_threshold: Decimal = Field(default=Decimal("1000"))
    large_amount_threshold: Decimal = Field(default=Decimal("10000"))
    wallet_currency: str = Field(default="USD", min_length=3, max_length=3)

    audit_page_size: int = Field(default=50, ge=1)
    audit_max_page_size: int = Field(default=500, ge=1)

    auto_draw_hour_utc: int = Field(default=2, ge=0, le=23)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
