"""
Review feed client for the App Review Poller.

This module retrieves the App Store customer-review JSON feed for an
application and turns its entries into Review records.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from .config import FeedConfig
from .exceptions import FeedFetchError, FeedParseError
from .models import Review

logger = structlog.get_logger(__name__)


def _label(entry: dict[str, Any], *path: str) -> str:
    """Read the ``label`` value nested under ``path`` in a feed entry."""
    node: Any = entry
    for key in path:
        if not isinstance(node, dict):
            return ""
        node = node.get(key)
    if not isinstance(node, dict):
        return ""
    label = node.get("label", "")
    return label if isinstance(label, str) else str(label)


class FeedClient:
    """
    Client for the per-application review feed.

    A single request is issued per fetch; retrying is layered on top by
    fetch_with_retry so callers decide how many attempts a cycle gets.
    """

    def __init__(
        self,
        feed_config: FeedConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the feed client.

        Args:
            feed_config: Feed URL template, timeout and backoff settings
            http_client: Optional pre-built HTTP client (owned by the caller)
        """
        self.config = feed_config or FeedConfig()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=self.config.request_timeout_seconds,
            headers={"Accept": "application/json"},
        )

    def feed_url(self, app_id: str) -> str:
        """Build the feed URL for an application."""
        return self.config.url_template.format(app_id=app_id)

    async def fetch_reviews(self, app_id: str) -> list[Review]:
        """
        Fetch and parse the current review feed for an application.

        Args:
            app_id: Application id

        Returns:
            Candidate reviews in feed order

        Raises:
            FeedFetchError: On transport errors or non-200 responses
            FeedParseError: If the response body is not a feed document
        """
        url = self.feed_url(app_id)
        context = {"app_id": app_id, "url": url}

        try:
            response = await self.http_client.get(url)
        except httpx.HTTPError as e:
            raise FeedFetchError(
                f"Failed to fetch review feed: {e}", context=context
            ) from e

        if response.status_code != httpx.codes.OK:
            raise FeedFetchError(
                f"Review feed returned status {response.status_code}",
                status_code=response.status_code,
                context=context,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FeedParseError(
                f"Failed to decode review feed: {e}", context=context
            ) from e

        return self.parse_reviews(payload, app_id)

    def parse_reviews(self, payload: Any, app_id: str) -> list[Review]:
        """
        Convert a decoded feed document into reviews.

        Malformed entries are dropped one by one; they never fail the
        whole feed.
        """
        if not isinstance(payload, dict):
            raise FeedParseError(
                "Review feed is not a JSON object", context={"app_id": app_id}
            )

        feed = payload.get("feed") or {}
        entries = feed.get("entry", []) if isinstance(feed, dict) else []
        # A feed with a single entry carries an object instead of a list
        if isinstance(entries, dict):
            entries = [entries]

        reviews: list[Review] = []
        ingested_at = datetime.now(UTC)

        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("Skipping non-object feed entry", app_id=app_id)
                continue

            rating_label = _label(entry, "im:rating")

            # The leading entry describes the app itself and has no rating
            if not reviews and rating_label == "":
                continue

            try:
                rating = int(rating_label)
            except ValueError:
                logger.warning(
                    "Invalid rating format", app_id=app_id, rating=rating_label
                )
                continue

            updated_label = _label(entry, "updated")
            try:
                submitted_date = datetime.fromisoformat(updated_label)
            except ValueError:
                logger.warning("Invalid date format", app_id=app_id, date=updated_label)
                continue

            try:
                review = Review(
                    id=_label(entry, "id"),
                    app_id=app_id,
                    author=_label(entry, "author", "name"),
                    rating=rating,
                    title=_label(entry, "title") or None,
                    content=_label(entry, "content"),
                    submitted_date=submitted_date,
                    created_at=ingested_at,
                )
            except ValidationError as e:
                logger.warning(
                    "Dropping invalid review entry",
                    app_id=app_id,
                    review_id=_label(entry, "id"),
                    error=str(e),
                )
                continue

            if not review.id:
                logger.warning("Dropping review entry without id", app_id=app_id)
                continue

            reviews.append(review)

        return reviews

    async def fetch_with_retry(self, app_id: str, max_attempts: int = 3) -> list[Review]:
        """
        Fetch reviews, retrying failed attempts with linear backoff.

        After failed attempt n the client sleeps n backoff units. The sleep
        is cancellable, so a cycle timeout or shutdown interrupts it.

        Args:
            app_id: Application id
            max_attempts: Total number of attempts

        Returns:
            Reviews from the first successful attempt

        Raises:
            FeedFetchError: When every attempt failed
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        last_error: FeedFetchError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                return await self.fetch_reviews(app_id)
            except FeedFetchError as e:
                last_error = e

            if attempt < max_attempts:
                backoff = attempt * self.config.retry_backoff_seconds
                logger.warning(
                    "Feed fetch failed, retrying",
                    app_id=app_id,
                    attempt=attempt,
                    backoff_seconds=backoff,
                    error=str(last_error),
                )
                await asyncio.sleep(backoff)

        raise FeedFetchError(
            f"Failed after {max_attempts} attempts: {last_error}",
            status_code=last_error.status_code if last_error else None,
            context={"app_id": app_id, "attempts": max_attempts},
        ) from last_error

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()
