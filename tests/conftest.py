"""
Pytest configuration and fixtures for App Review Poller tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from review_poller.config import FeedConfig, PollingConfig, Settings
from review_poller.feed_client import FeedClient
from review_poller.models import Review
from review_poller.repository import InMemoryReviewRepository


@pytest.fixture
def mock_settings() -> Settings:
    """Settings for testing."""
    return Settings(
        database_url="memory://",
        seed_app_id="",
        debug=True,
        log_level="DEBUG",
        log_format="console",
        retry_backoff_seconds=0.01,
    )


@pytest.fixture
def feed_config() -> FeedConfig:
    """Feed configuration with a fast backoff and a local URL."""
    return FeedConfig(
        url_template="https://feeds.test/reviews/{app_id}.json",
        request_timeout_seconds=5.0,
        retry_backoff_seconds=0.01,
    )


@pytest.fixture
def polling_config() -> PollingConfig:
    """Polling configuration with short timeouts."""
    return PollingConfig(
        default_interval=timedelta(minutes=5),
        max_attempts=3,
        cycle_timeout_seconds=5.0,
    )


@pytest.fixture
def memory_repository() -> InMemoryReviewRepository:
    """Empty in-memory repository."""
    return InMemoryReviewRepository()


@pytest.fixture
def mock_feed_client() -> AsyncMock:
    """Mock feed client returning no reviews."""
    client = AsyncMock(spec=FeedClient)
    client.fetch_with_retry.return_value = []
    return client


@pytest.fixture
def make_review() -> Callable[..., Review]:
    """Factory for review records."""

    def _make_review(
        review_id: str,
        app_id: str = "42",
        hours_ago: float = 1.0,
        **overrides: Any,
    ) -> Review:
        fields: dict[str, Any] = {
            "id": review_id,
            "app_id": app_id,
            "author": f"author-{review_id}",
            "rating": 4,
            "title": f"Title {review_id}",
            "content": f"Content for {review_id}",
            "submitted_date": datetime.now(UTC) - timedelta(hours=hours_ago),
        }
        fields.update(overrides)
        return Review(**fields)

    return _make_review


@pytest.fixture
def sample_feed_payload() -> dict[str, Any]:
    """Review feed document with a metadata entry and some malformed reviews."""
    return {
        "feed": {
            "author": {"name": {"label": "iTunes Store"}},
            "entry": [
                {
                    "id": {"label": "https://apps.apple.com/app/id42"},
                    "title": {"label": "Example App"},
                    "updated": {"label": "2024-01-15T10:00:00-07:00"},
                },
                {
                    "id": {"label": "1001"},
                    "author": {"name": {"label": "alice"}},
                    "im:rating": {"label": "5"},
                    "title": {"label": "Love it"},
                    "content": {"label": "Works great."},
                    "updated": {"label": "2024-01-15T09:30:00-07:00"},
                },
                {
                    "id": {"label": "1002"},
                    "author": {"name": {"label": "bob"}},
                    "im:rating": {"label": "five"},
                    "title": {"label": "Bad rating"},
                    "content": {"label": "Rating is not a number."},
                    "updated": {"label": "2024-01-15T09:00:00-07:00"},
                },
                {
                    "id": {"label": "1003"},
                    "author": {"name": {"label": "carol"}},
                    "im:rating": {"label": "3"},
                    "title": {"label": "Bad date"},
                    "content": {"label": "Date cannot be parsed."},
                    "updated": {"label": "yesterday"},
                },
                {
                    "id": {"label": "1004"},
                    "author": {"name": {"label": "dave"}},
                    "im:rating": {"label": "2"},
                    "title": {"label": ""},
                    "content": {"label": "No title here."},
                    "updated": {"label": "2024-01-14T08:00:00Z"},
                },
                {
                    "id": {"label": "1005"},
                    "author": {"name": {"label": "erin"}},
                    "im:rating": {"label": "9"},
                    "title": {"label": "Out of range"},
                    "content": {"label": "Rating above five."},
                    "updated": {"label": "2024-01-14T07:00:00Z"},
                },
            ],
        }
    }
