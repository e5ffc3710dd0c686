"""
Data models for the App Review Poller.

Reviews and per-app polling configuration are persisted through the
repository layer; the remaining models describe scheduler output.
"""

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .durations import format_duration


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Review(BaseModel):
    """A customer review as stored by the poller."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Provider-supplied review id (dedup key)")
    app_id: str = Field(..., description="Application the review belongs to")
    author: str = Field(default="", description="Review author name")
    rating: int = Field(..., ge=1, le=5, description="Star rating")
    title: str | None = Field(default=None, description="Optional review title")
    content: str = Field(default="", description="Review body")
    submitted_date: datetime = Field(..., description="Submission time from feed")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Local ingestion time",
    )

    @field_validator("submitted_date", "created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        return _as_utc(v)


class AppPollingConfig(BaseModel):
    """Persisted polling configuration for a single application."""

    app_id: str = Field(..., description="Application id")
    poll_interval: timedelta = Field(
        default=timedelta(minutes=5), description="Interval between polls"
    )
    last_poll: datetime | None = Field(
        default=None, description="Time of the last completed polling cycle"
    )
    is_active: bool = Field(default=True, description="Whether to poll this app")

    @field_validator("last_poll")
    @classmethod
    def ensure_timezone(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps as UTC."""
        return _as_utc(v) if v is not None else None

    @property
    def is_schedulable(self) -> bool:
        """Check if the config describes a pollable app."""
        return self.is_active and self.poll_interval > timedelta(0)

    @field_serializer("poll_interval")
    def serialize_poll_interval(self, value: timedelta) -> str:
        return format_duration(value)


class PollResult(BaseModel):
    """Summary of one fetch-and-store cycle."""

    app_id: str
    fetched: int = 0
    stored: int = 0


class PollerStatus(BaseModel):
    """Status entry for an application that is currently being polled."""

    interval: str
    active: bool = True
