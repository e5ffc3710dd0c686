#!/usr/bin/env python3
"""
Fetch one application's review feed for local debugging.

This script runs a single fetch with the configured retry policy and prints
the parsed reviews. Nothing is stored.
"""

import asyncio
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from review_poller.config import get_settings
from review_poller.exceptions import FeedFetchError
from review_poller.feed_client import FeedClient


async def check_feed(app_id: str) -> bool:
    """Fetch and print the review feed for an app."""
    settings = get_settings()
    client = FeedClient(settings.feed_config)

    print(f"📋 Feed URL: {client.feed_url(app_id)}")

    try:
        reviews = await client.fetch_with_retry(app_id, settings.fetch_max_attempts)
    except FeedFetchError as e:
        print(f"❌ Feed fetch failed: {e}")
        return False
    finally:
        await client.close()

    print(f"✅ Parsed {len(reviews)} reviews")
    for review in reviews[:10]:
        title = review.title or "(no title)"
        print(f"   - [{review.rating}★] {title} by {review.author} ({review.submitted_date})")

    return True


if __name__ == "__main__":
    print("🚀 App Review Poller - Feed Check")
    print("=" * 50)

    target = sys.argv[1] if len(sys.argv) > 1 else get_settings().seed_app_id
    if not target:
        print("❌ Pass an app id or set SEED_APP_ID")
        sys.exit(1)

    success = asyncio.run(check_feed(target))
    sys.exit(0 if success else 1)
