"""
HTTP API for the App Review Poller.

This module exposes stored reviews, per-app polling configuration and the
scheduler status. Services are read from ``request.app.state``, where the
application lifespan installs them.
"""

from datetime import timedelta
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, field_validator

from .config import PollingConfig
from .durations import format_duration, parse_duration
from .models import AppPollingConfig
from .polling import PollingManager
from .repository import ReviewRepository

logger = structlog.get_logger(__name__)

DEFAULT_HOURS = 48
DEFAULT_LIMIT = 100
MAX_LIMIT = 500
# A century of hours; larger windows cannot be subtracted from the current time
MAX_HOURS = 24 * 365 * 100


class ConfigureAppRequest(BaseModel):
    """Body of a polling configuration request."""

    poll_interval: str | None = Field(
        default=None, description="Polling interval such as 90s, 5m or 1h"
    )
    is_active: bool = Field(default=True, description="Whether to poll the app")

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: str | None) -> str | None:
        """Reject intervals that cannot be scheduled."""
        if v is None or not v.strip():
            return None
        if parse_duration(v) <= timedelta(0):
            raise ValueError(f"poll_interval must be positive, got {v}")
        return v.strip()


def _parse_bounded_int(raw: str | None, default: int, maximum: int | None = None) -> int:
    """Parse a positive query integer, falling back to the default."""
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0 or (maximum is not None and value > maximum):
        return default
    return value


class ReviewsAPI:
    """
    Review and polling-configuration routes.

    The router is mounted under ``/api`` by the application.
    """

    def __init__(self) -> None:
        """Initialize the API router."""
        self.router = APIRouter()
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up API routes."""
        self.router.get("/reviews/{app_id}")(self.get_reviews)
        self.router.post("/apps/{app_id}/configure")(self.configure_app)
        self.router.get("/polling/status")(self.get_polling_status)

    @staticmethod
    def _repository(request: Request) -> ReviewRepository:
        return request.app.state.repository

    @staticmethod
    def _polling_manager(request: Request) -> PollingManager:
        return request.app.state.polling_manager

    async def get_reviews(
        self,
        app_id: str,
        request: Request,
        hours: str | None = None,
        limit: str | None = None,
    ) -> dict[str, Any]:
        """Get reviews for an app submitted within the last ``hours``."""
        hours_value = _parse_bounded_int(hours, DEFAULT_HOURS, MAX_HOURS)
        limit_value = _parse_bounded_int(limit, DEFAULT_LIMIT, MAX_LIMIT)

        try:
            reviews = await self._repository(request).get_reviews(
                app_id, hours_value, limit_value
            )
        except Exception as e:
            logger.error("Failed to get reviews", app_id=app_id, error=str(e))
            raise HTTPException(
                status_code=500, detail="Failed to fetch reviews"
            ) from e

        return {
            "reviews": [review.model_dump(mode="json") for review in reviews],
            "meta": {"app_id": app_id, "hours": hours_value, "count": len(reviews)},
        }

    async def configure_app(
        self, app_id: str, body: ConfigureAppRequest, request: Request
    ) -> dict[str, Any]:
        """Store polling configuration for an app and apply it to the scheduler."""
        polling_config: PollingConfig = request.app.state.polling_config
        interval = (
            parse_duration(body.poll_interval)
            if body.poll_interval
            else polling_config.default_interval
        )

        logger.info(
            "Configuring app polling",
            app_id=app_id,
            poll_interval=format_duration(interval),
            is_active=body.is_active,
        )

        repository = self._repository(request)
        manager = self._polling_manager(request)

        # A running cycle rewrites the config as active, so it must be gone first
        if not body.is_active:
            await manager.stop_polling(app_id)

        try:
            existing = await repository.get_app_config(app_id)
            config = AppPollingConfig(
                app_id=app_id,
                poll_interval=interval,
                last_poll=existing.last_poll if existing else None,
                is_active=body.is_active,
            )
            await repository.upsert_app_config(config)
        except Exception as e:
            logger.error("Failed to save app config", app_id=app_id, error=str(e))
            raise HTTPException(
                status_code=500, detail="Failed to save configuration"
            ) from e

        if config.is_active:
            await manager.start_polling(app_id, interval)

        return {
            "message": "Configuration updated successfully",
            "config": config.model_dump(mode="json"),
        }

    async def get_polling_status(self, request: Request) -> dict[str, Any]:
        """Get the applications currently being polled."""
        status = self._polling_manager(request).get_polling_status()
        return {
            "polling_status": {
                app_id: entry.model_dump() for app_id, entry in status.items()
            }
        }
