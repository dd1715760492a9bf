"""Configuration management for MediBook."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/medibook.db",
        description="Async SQLAlchemy DSN for appointments and availability",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    auto_create_tables: bool = Field(
        default=True,
        description="Create missing tables on API startup",
    )

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)
    api_key: str = Field(
        default="",
        description="API key for authenticating requests",
    )

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Scheduling
    default_slot_minutes: int = Field(
        default=30,
        ge=5,
        le=240,
        description="Slot size used when a profile does not set one",
    )
    default_cancellation_reason: str = Field(default="Cancelled by requester")
    page_size_limit: int = Field(default=100, description="Max items per list page")

    # Debug
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode (exposes error details in responses)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def has_api_key(self) -> bool:
        """Check if API key auth is configured."""
        return bool(self.api_key)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
