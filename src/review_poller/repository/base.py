"""
Persistence port for the App Review Poller.

The polling scheduler and the HTTP layer talk to storage only through
this interface, so backends can be swapped without touching either.
"""

from abc import ABC, abstractmethod

from ..models import AppPollingConfig, Review


class ReviewRepository(ABC):
    """Abstract base class for review and polling-config storage."""

    @abstractmethod
    async def create_review(self, review: Review) -> None:
        """
        Store a review.

        Creating a review whose id is already stored is a no-op.

        Args:
            review: Review to store
        """
        pass

    @abstractmethod
    async def review_exists(self, review_id: str) -> bool:
        """
        Check whether a review id is already stored.

        Args:
            review_id: Provider-supplied review id

        Returns:
            True if the review exists
        """
        pass

    @abstractmethod
    async def get_reviews(
        self, app_id: str, hours: int, limit: int
    ) -> list[Review]:
        """
        Get recent reviews for an application.

        Args:
            app_id: Application id
            hours: Only include reviews submitted within this many hours
            limit: Maximum number of reviews to return

        Returns:
            Reviews ordered by submission time, newest first
        """
        pass

    @abstractmethod
    async def get_app_config(self, app_id: str) -> AppPollingConfig | None:
        """
        Get polling configuration for an application.

        Args:
            app_id: Application id

        Returns:
            The stored configuration or None if not found
        """
        pass

    @abstractmethod
    async def upsert_app_config(self, config: AppPollingConfig) -> None:
        """
        Insert or replace polling configuration for an application.

        Args:
            config: Configuration to store
        """
        pass

    @abstractmethod
    async def get_active_apps(self) -> list[str]:
        """
        Get ids of all applications marked active.

        Returns:
            List of application ids
        """
        pass

    async def health_check(self) -> bool:
        """Check if the storage backend is healthy."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
        return None
