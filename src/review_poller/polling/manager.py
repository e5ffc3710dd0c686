"""
Polling manager for the App Review Poller.

This module owns the set of live per-application pollers and runs the
fetch-and-store cycle each of them triggers.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import structlog

from ..config import PollingConfig
from ..durations import format_duration
from ..exceptions import FeedFetchError
from ..feed_client import FeedClient
from ..models import AppPollingConfig, PollerStatus, PollResult
from ..repository import ReviewRepository
from .poller import AppPoller

logger = structlog.get_logger(__name__)


class PollingManager:
    """
    Single authority over which applications are polled and how often.

    Every structural change to the poller map (create, replace, remove)
    happens under one asyncio lock, so at most one poller exists per
    application id. One manager is created per process and handed to the
    HTTP layer; nothing here is module-global.
    """

    def __init__(
        self,
        repository: ReviewRepository,
        feed_client: FeedClient,
        polling_config: PollingConfig | None = None,
    ):
        """
        Initialize the polling manager.

        Args:
            repository: Review and polling-config storage
            feed_client: Review feed client
            polling_config: Retry and timeout settings for cycles
        """
        self.repository = repository
        self.feed_client = feed_client
        self.config = polling_config or PollingConfig()

        self.pollers: dict[str, AppPoller] = {}
        self._lock = asyncio.Lock()
        self._shutdown_event = asyncio.Event()

    def is_shut_down(self) -> bool:
        """Check if stop_all has been called."""
        return self._shutdown_event.is_set()

    async def start_all(self) -> None:
        """
        Start a poller for every active application in storage.

        Per-application problems are logged and skipped.

        Raises:
            Exception: Whatever the repository raised while listing active apps
        """
        try:
            active_apps = await self.repository.get_active_apps()
        except Exception as e:
            logger.error("Failed to get active apps", error=str(e))
            raise

        logger.info("Starting polling for active apps", count=len(active_apps))

        if not active_apps:
            logger.info("No active apps found, skipping polling startup")
            return

        for app_id in active_apps:
            try:
                config = await self.repository.get_app_config(app_id)
            except Exception as e:
                logger.error("Failed to get app config", app_id=app_id, error=str(e))
                continue

            if config is None:
                logger.warning("No config found for app", app_id=app_id)
                continue

            if not config.is_schedulable:
                if not config.is_active:
                    logger.info("App is not active, skipping", app_id=app_id)
                else:
                    logger.warning(
                        "Skipping app with invalid polling interval",
                        app_id=app_id,
                        interval=format_duration(config.poll_interval),
                    )
                continue

            await self.start_polling(app_id, config.poll_interval)

        logger.info("Finished starting polling for all apps", running=len(self.pollers))

    async def start_polling(self, app_id: str, interval: timedelta) -> bool:
        """
        Start polling an application, replacing any existing poller.

        The previous poller is fully stopped (task cancelled and awaited)
        before the new one starts.

        Args:
            app_id: Application id
            interval: Time between polling cycles

        Returns:
            True if a poller was started
        """
        if interval <= timedelta(0):
            logger.error(
                "Invalid polling interval",
                app_id=app_id,
                interval=format_duration(interval),
            )
            return False

        async with self._lock:
            if self._shutdown_event.is_set():
                logger.warning("Polling manager is shut down, not starting", app_id=app_id)
                return False

            existing = self.pollers.get(app_id)
            if existing is not None:
                await self._stop_poller(existing)

            poller = AppPoller(
                app_id,
                interval,
                self.poll_once,
                self._shutdown_event,
                cycle_timeout_seconds=self.config.cycle_timeout_seconds,
            )
            self.pollers[app_id] = poller
            poller.start()

        logger.info(
            "Started polling",
            app_id=app_id,
            interval=format_duration(interval),
            replaced=existing is not None,
        )
        return True

    async def stop_polling(self, app_id: str) -> bool:
        """
        Stop polling an application. Unknown ids are a no-op.

        Returns:
            True if a poller was stopped
        """
        async with self._lock:
            poller = self.pollers.pop(app_id, None)
            if poller is None:
                return False
            await self._stop_poller(poller)

        logger.info("Stopped polling", app_id=app_id)
        return True

    async def stop_all(self) -> None:
        """Signal global shutdown and stop every live poller."""
        self._shutdown_event.set()

        async with self._lock:
            pollers = list(self.pollers.values())
            self.pollers.clear()

            for poller in pollers:
                poller.stop()
            if pollers:
                await asyncio.gather(*(poller.wait_stopped() for poller in pollers))

        logger.info("Stopped all pollers", count=len(pollers))

    def get_polling_status(self) -> dict[str, PollerStatus]:
        """
        Get a snapshot of the applications currently being polled.

        Applications without an entry are not being polled.
        """
        return {app_id: poller.status() for app_id, poller in self.pollers.items()}

    async def poll_once(self, app_id: str, interval: timedelta) -> PollResult | None:
        """
        Run one fetch-and-store cycle for an application.

        Args:
            app_id: Application id
            interval: Interval recorded in the app's polling config

        Returns:
            Cycle summary, or None if the feed could not be fetched
        """
        try:
            reviews = await self.feed_client.fetch_with_retry(
                app_id, self.config.max_attempts
            )
        except FeedFetchError as e:
            logger.error("Failed to fetch reviews", app_id=app_id, error=str(e))
            return None

        stored = 0
        for review in reviews:
            try:
                exists = await self.repository.review_exists(review.id)
            except Exception as e:
                logger.error(
                    "Failed to check review existence",
                    app_id=app_id,
                    review_id=review.id,
                    error=str(e),
                )
                continue

            if exists:
                continue

            try:
                await self.repository.create_review(review)
            except Exception as e:
                logger.error(
                    "Failed to store review",
                    app_id=app_id,
                    review_id=review.id,
                    error=str(e),
                )
                continue
            stored += 1

        config = AppPollingConfig(
            app_id=app_id,
            poll_interval=interval,
            last_poll=datetime.now(UTC),
            is_active=True,
        )
        try:
            await self.repository.upsert_app_config(config)
        except Exception as e:
            logger.error("Failed to update app config", app_id=app_id, error=str(e))

        result = PollResult(app_id=app_id, fetched=len(reviews), stored=stored)
        logger.info(
            "Polling completed",
            app_id=app_id,
            fetched=result.fetched,
            stored=result.stored,
        )
        return result

    async def _stop_poller(self, poller: AppPoller) -> None:
        poller.stop()
        await poller.wait_stopped()
