"""
In-memory review repository.

Used for local development and tests; nothing survives a restart.
"""

import logging
from datetime import UTC, datetime, timedelta

from ..models import AppPollingConfig, Review
from .base import ReviewRepository

logger = logging.getLogger(__name__)


class InMemoryReviewRepository(ReviewRepository):
    """Dictionary-backed repository."""

    def __init__(self) -> None:
        """Initialize empty review and config stores."""
        self.reviews: dict[str, Review] = {}
        self.app_configs: dict[str, AppPollingConfig] = {}

    async def create_review(self, review: Review) -> None:
        """Store a review unless its id is already present."""
        if review.id in self.reviews:
            logger.debug(f"Review {review.id} already stored, ignoring")
            return
        self.reviews[review.id] = review

    async def review_exists(self, review_id: str) -> bool:
        """Check whether a review id is stored."""
        return review_id in self.reviews

    async def get_reviews(
        self, app_id: str, hours: int, limit: int
    ) -> list[Review]:
        """Get reviews for an app submitted within the last ``hours``."""
        cutoff = datetime.now(UTC) - timedelta(hours=hours)
        matching = [
            review
            for review in self.reviews.values()
            if review.app_id == app_id and review.submitted_date >= cutoff
        ]
        matching.sort(key=lambda r: r.submitted_date, reverse=True)
        return matching[:limit]

    async def get_app_config(self, app_id: str) -> AppPollingConfig | None:
        """Get polling config for an app."""
        config = self.app_configs.get(app_id)
        return config.model_copy() if config else None

    async def upsert_app_config(self, config: AppPollingConfig) -> None:
        """Insert or replace polling config for an app."""
        self.app_configs[config.app_id] = config.model_copy()
        logger.debug(f"Stored polling config for {config.app_id}")

    async def get_active_apps(self) -> list[str]:
        """Get ids of active apps."""
        return sorted(
            app_id for app_id, config in self.app_configs.items() if config.is_active
        )
