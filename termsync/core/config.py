"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TERMSYNC_",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    base_url: str = Field(
        default="http://localhost:8888/",
        description="Base URL of the terminal server",
    )
    ws_url: str = Field(
        default="",
        description="WebSocket base URL (derived from base_url when empty)",
    )
    request_timeout: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for a single REST request in seconds",
    )
    terminals_available: bool = Field(
        default=True,
        description="Whether the server exposes the terminals API",
    )
    unavailable_statuses: list[int] = Field(
        default_factory=lambda: [503, 424],
        description="HTTP statuses meaning the backing server is down",
    )

    # Polling
    poll_interval: float = Field(
        default=10.0,
        gt=0,
        description="Base interval between polls in seconds",
    )
    poll_max_interval: float = Field(
        default=300.0,
        gt=0,
        description="Ceiling for the backoff interval in seconds",
    )
    poll_backoff: float = Field(
        default=3.0,
        ge=0,
        description="Backoff growth factor on failed polls (<= 1 disables)",
    )
    standby: Literal["never", "when-hidden"] = Field(
        default="when-hidden",
        description="When the manager stops polling the API",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated daily)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    @field_validator("base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"

    @property
    def resolved_ws_url(self) -> str:
        """Get the WebSocket URL, deriving it from the base URL if unset."""
        if self.ws_url:
            return self.ws_url
        if self.base_url.startswith("https://"):
            return "wss://" + self.base_url[len("https://") :]
        if self.base_url.startswith("http://"):
            return "ws://" + self.base_url[len("http://") :]
        return self.base_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.poll_interval
        10.0
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
