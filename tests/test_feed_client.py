"""
Tests for the review feed client.

Covers feed parsing, HTTP error handling through an httpx mock transport,
and the retry loop with its linear backoff.
"""

import asyncio
import time
from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import AsyncMock, call, patch

import httpx
import pytest

from review_poller.exceptions import FeedFetchError, FeedParseError
from review_poller.feed_client import FeedClient


def _client_with_handler(feed_config, handler) -> FeedClient:
    transport = httpx.MockTransport(handler)
    return FeedClient(feed_config, http_client=httpx.AsyncClient(transport=transport))


class TestParseReviews:
    """Test conversion of feed documents into reviews."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = FeedClient()

    def test_drops_metadata_and_malformed_entries(self, sample_feed_payload):
        """Test that only well-formed review entries survive parsing."""
        reviews = self.client.parse_reviews(sample_feed_payload, "42")

        assert [review.id for review in reviews] == ["1001", "1004"]

    def test_review_fields(self, sample_feed_payload):
        """Test that review fields are read from the entry labels."""
        first, second = self.client.parse_reviews(sample_feed_payload, "42")

        assert first.app_id == "42"
        assert first.author == "alice"
        assert first.rating == 5
        assert first.title == "Love it"
        assert first.content == "Works great."
        assert first.submitted_date == datetime(
            2024, 1, 15, 9, 30, tzinfo=timezone(timedelta(hours=-7))
        )
        assert first.created_at.tzinfo is not None

        # Empty title becomes None
        assert second.title is None
        assert second.submitted_date == datetime(2024, 1, 14, 8, 0, tzinfo=UTC)

    def test_single_entry_object(self):
        """Test that a feed with one entry object (not a list) is parsed."""
        payload = {
            "feed": {
                "entry": {
                    "id": {"label": "2001"},
                    "author": {"name": {"label": "zoe"}},
                    "im:rating": {"label": "1"},
                    "title": {"label": "Crashes"},
                    "content": {"label": "Crashes on launch."},
                    "updated": {"label": "2024-02-01T12:00:00Z"},
                }
            }
        }

        reviews = self.client.parse_reviews(payload, "42")

        assert len(reviews) == 1
        assert reviews[0].rating == 1

    def test_unrated_entry_after_first_review_is_dropped(self, sample_feed_payload):
        """Test that only leading unrated entries are treated as metadata."""
        entries = sample_feed_payload["feed"]["entry"]
        entries.append(
            {
                "id": {"label": "1006"},
                "author": {"name": {"label": "frank"}},
                "content": {"label": "No rating at all."},
                "updated": {"label": "2024-01-13T07:00:00Z"},
            }
        )

        reviews = self.client.parse_reviews(sample_feed_payload, "42")

        assert "1006" not in [review.id for review in reviews]

    def test_missing_entries_returns_empty(self):
        """Test that a feed without entries yields no reviews."""
        assert self.client.parse_reviews({"feed": {}}, "42") == []
        assert self.client.parse_reviews({}, "42") == []

    def test_non_object_document_raises(self):
        """Test that a document that is not a JSON object fails to parse."""
        with pytest.raises(FeedParseError):
            self.client.parse_reviews(["not", "a", "feed"], "42")


class TestFetchReviews:
    """Test single feed requests."""

    @pytest.mark.asyncio
    async def test_fetch_success(self, feed_config, sample_feed_payload):
        """Test a successful fetch against the templated URL."""
        requested_urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested_urls.append(str(request.url))
            return httpx.Response(200, json=sample_feed_payload)

        client = _client_with_handler(feed_config, handler)
        reviews = await client.fetch_reviews("42")

        assert requested_urls == ["https://feeds.test/reviews/42.json"]
        assert [review.id for review in reviews] == ["1001", "1004"]

    @pytest.mark.asyncio
    async def test_non_200_raises(self, feed_config):
        """Test that a non-200 response is a fetch error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        client = _client_with_handler(feed_config, handler)

        with pytest.raises(FeedFetchError) as exc_info:
            await client.fetch_reviews("42")

        assert exc_info.value.status_code == 503
        assert exc_info.value.context["app_id"] == "42"

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, feed_config):
        """Test that transport failures are wrapped as fetch errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client_with_handler(feed_config, handler)

        with pytest.raises(FeedFetchError, match="connection refused"):
            await client.fetch_reviews("42")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, feed_config):
        """Test that an undecodable body is a parse error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>not json</html>")

        client = _client_with_handler(feed_config, handler)

        with pytest.raises(FeedParseError):
            await client.fetch_reviews("42")

    @pytest.mark.asyncio
    async def test_close_leaves_external_client_open(self, feed_config):
        """Test that a caller-supplied HTTP client is not closed."""
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        )
        client = FeedClient(feed_config, http_client=http_client)

        await client.close()

        assert not http_client.is_closed
        await http_client.aclose()


class TestFetchWithRetry:
    """Test the retry loop."""

    @pytest.mark.asyncio
    async def test_fails_twice_then_succeeds(self, feed_config, make_review):
        """Test recovery on the third attempt after 1 + 2 backoff units."""
        client = FeedClient(feed_config)
        reviews = [make_review("r1")]

        with patch.object(
            client,
            "fetch_reviews",
            AsyncMock(
                side_effect=[FeedFetchError("first"), FeedFetchError("second"), reviews]
            ),
        ) as fetch:
            started = time.monotonic()
            result = await client.fetch_with_retry("42", max_attempts=3)
            elapsed = time.monotonic() - started

        assert result == reviews
        assert fetch.await_count == 3
        # 1 + 2 backoff units, with slack for timer granularity
        assert elapsed >= 3 * feed_config.retry_backoff_seconds * 0.9
        await client.close()

    @pytest.mark.asyncio
    async def test_linear_backoff_schedule(self, feed_config):
        """Test that attempt n is followed by n backoff units."""
        client = FeedClient(feed_config.model_copy(update={"retry_backoff_seconds": 1.0}))

        with (
            patch.object(
                client,
                "fetch_reviews",
                AsyncMock(side_effect=FeedFetchError("down")),
            ),
            patch(
                "review_poller.feed_client.asyncio.sleep", new_callable=AsyncMock
            ) as sleep,
        ):
            with pytest.raises(FeedFetchError):
                await client.fetch_with_retry("42", max_attempts=4)

        assert sleep.await_args_list == [call(1.0), call(2.0), call(3.0)]
        await client.close()

    @pytest.mark.asyncio
    async def test_always_failing_stops_after_max_attempts(self, feed_config):
        """Test that exactly max_attempts attempts are made."""
        client = FeedClient(feed_config)
        last_error = FeedFetchError("third", status_code=500)

        with patch.object(
            client,
            "fetch_reviews",
            AsyncMock(
                side_effect=[FeedFetchError("first"), FeedFetchError("second"), last_error]
            ),
        ) as fetch:
            with pytest.raises(FeedFetchError, match="3 attempts") as exc_info:
                await client.fetch_with_retry("42", max_attempts=3)

        assert fetch.await_count == 3
        assert exc_info.value.__cause__ is last_error
        assert exc_info.value.status_code == 500
        await client.close()

    @pytest.mark.asyncio
    async def test_backoff_sleep_observes_cancellation(self, feed_config):
        """Test that a cycle timeout interrupts the backoff sleep."""
        client = FeedClient(feed_config.model_copy(update={"retry_backoff_seconds": 30.0}))

        with patch.object(
            client, "fetch_reviews", AsyncMock(side_effect=FeedFetchError("down"))
        ):
            started = time.monotonic()
            with pytest.raises(TimeoutError):
                await asyncio.wait_for(
                    client.fetch_with_retry("42", max_attempts=3), timeout=0.1
                )
            elapsed = time.monotonic() - started

        assert elapsed < 5.0
        await client.close()

    @pytest.mark.asyncio
    async def test_rejects_non_positive_attempts(self, feed_config):
        """Test that at least one attempt is required."""
        client = FeedClient(feed_config)

        with pytest.raises(ValueError):
            await client.fetch_with_retry("42", max_attempts=0)
        await client.close()
