"""
Configuration management for the App Review Poller.

This module handles environment variables, settings validation, and configuration
management using Pydantic Settings for type safety and validation.
"""

from datetime import timedelta
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .durations import parse_duration

DEFAULT_FEED_URL_TEMPLATE = (
    "https://itunes.apple.com/us/rss/customerreviews/"
    "id={app_id}/sortBy=mostRecent/json"
)


class ServerConfig(BaseModel):
    """Web server configuration settings."""

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=4000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


class FeedConfig(BaseModel):
    """Review feed client configuration settings."""

    url_template: str = Field(
        default=DEFAULT_FEED_URL_TEMPLATE,
        description="Feed URL with an {app_id} placeholder",
    )
    request_timeout_seconds: float = Field(
        default=30.0, description="Timeout for a single feed request"
    )
    retry_backoff_seconds: float = Field(
        default=1.0, description="Backoff unit between failed fetch attempts"
    )


class PollingConfig(BaseModel):
    """Polling scheduler configuration settings."""

    default_interval: timedelta = Field(
        default=timedelta(minutes=5),
        description="Interval used when a configure request omits one",
    )
    max_attempts: int = Field(default=3, description="Fetch attempts per cycle")
    cycle_timeout_seconds: float = Field(
        default=120.0, description="Upper bound for a single polling cycle"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=4000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./reviews.db",
        description="Database URL (sqlite:///path or memory://)",
    )
    seed_app_id: str = Field(
        default="595068606",
        description="App tracked by default when no app is configured yet "
        "(empty to disable)",
    )

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    # Feed configuration
    feed_url_template: str = Field(
        default=DEFAULT_FEED_URL_TEMPLATE, description="Review feed URL template"
    )
    feed_request_timeout_seconds: float = Field(
        default=30.0, description="Feed request timeout in seconds"
    )
    retry_backoff_seconds: float = Field(
        default=1.0, description="Linear backoff unit between fetch attempts"
    )

    # Polling configuration
    default_poll_interval: str = Field(
        default="5m", description="Default polling interval (e.g. 90s, 5m, 1h)"
    )
    fetch_max_attempts: int = Field(
        default=3, description="Maximum fetch attempts per polling cycle"
    )
    cycle_timeout_seconds: float = Field(
        default=120.0, description="Timeout for one fetch-and-store cycle"
    )

    # Security
    allowed_origins: str | list[str] = Field(
        default="*",
        description="Allowed CORS origins (comma-separated)",
    )
    enable_cors: bool = Field(default=True, description="Enable CORS")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> list[str]:
        """Parse allowed origins from comma-separated string or list."""
        if isinstance(v, str):
            # Handle comma-separated string format
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        elif isinstance(v, list):
            # Handle list format (from JSON or direct assignment)
            return v
        else:
            error_msg = f"allowed_origins must be a string or list, got {type(v)}"
            raise ValueError(error_msg)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}")
        return v.lower()

    @field_validator("default_poll_interval")
    @classmethod
    def validate_default_poll_interval(cls, v: str) -> str:
        """Validate that the default interval is a positive duration."""
        if parse_duration(v) <= timedelta(0):
            raise ValueError(f"Polling interval must be positive: {v}")
        return v

    @field_validator("feed_url_template")
    @classmethod
    def validate_feed_url_template(cls, v: str) -> str:
        """Validate the feed URL template."""
        if "{app_id}" not in v:
            raise ValueError("feed_url_template must contain an {app_id} placeholder")
        return v

    @field_validator(
        "fetch_max_attempts",
        "feed_request_timeout_seconds",
        "cycle_timeout_seconds",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate numeric limits."""
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    @field_validator("retry_backoff_seconds")
    @classmethod
    def validate_backoff(cls, v: float) -> float:
        """Validate the retry backoff unit."""
        if v < 0:
            raise ValueError(f"Backoff must not be negative, got {v}")
        return v

    @property
    def server_config(self) -> ServerConfig:
        """Get server configuration."""
        return ServerConfig(host=self.host, port=self.port, debug=self.debug)

    @property
    def feed_config(self) -> FeedConfig:
        """Get feed client configuration."""
        return FeedConfig(
            url_template=self.feed_url_template,
            request_timeout_seconds=self.feed_request_timeout_seconds,
            retry_backoff_seconds=self.retry_backoff_seconds,
        )

    @property
    def polling_config(self) -> PollingConfig:
        """Get polling configuration."""
        return PollingConfig(
            default_interval=parse_duration(self.default_poll_interval),
            max_attempts=self.fetch_max_attempts,
            cycle_timeout_seconds=self.cycle_timeout_seconds,
        )

    def get_allowed_origins(self) -> list[str]:
        """Get list of allowed CORS origins."""
        origins = self.allowed_origins
        if isinstance(origins, str):
            return [origin.strip() for origin in origins.split(",") if origin.strip()]
        return origins


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def __getattr__(name: str) -> Any:
    """Allow module-level access to settings attributes."""
    if name == "settings":
        return get_settings()
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
