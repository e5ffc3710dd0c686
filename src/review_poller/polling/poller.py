"""
Per-application poller.

An AppPoller owns one asyncio task that runs a fetch-and-store cycle for a
single application immediately and then on a fixed-rate tick.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
from enum import Enum
from typing import Any

import structlog

from ..durations import format_duration
from ..exceptions import InvalidIntervalError
from ..models import PollerStatus

logger = structlog.get_logger(__name__)

CycleRunner = Callable[[str, timedelta], Awaitable[Any]]


class PollerState(str, Enum):
    """Lifecycle states of an AppPoller."""

    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class AppPoller:
    """
    Periodic worker bound to one application id and interval.

    The poller goes created -> running -> stopped and never restarts;
    resuming an application means creating a new poller. It exits as soon
    as its own stop event or the shared shutdown event is set, because both
    are awaited together with the tick deadline.
    """

    def __init__(
        self,
        app_id: str,
        interval: timedelta,
        run_cycle: CycleRunner,
        shutdown_event: asyncio.Event,
        cycle_timeout_seconds: float = 120.0,
    ):
        """
        Initialize the poller.

        Args:
            app_id: Application to poll
            interval: Time between cycle starts
            run_cycle: Coroutine function executing one cycle
            shutdown_event: Process-wide shutdown signal
            cycle_timeout_seconds: Upper bound for a single cycle
        """
        if interval <= timedelta(0):
            raise InvalidIntervalError(
                f"Polling interval must be positive for app {app_id}",
                interval=format_duration(interval),
            )

        self.app_id = app_id
        self.interval = interval
        self.cycle_timeout_seconds = cycle_timeout_seconds
        self.state = PollerState.CREATED
        self.cycles_started = 0

        self._run_cycle = run_cycle
        self._shutdown_event = shutdown_event
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._next_tick = 0.0

    @property
    def interval_seconds(self) -> float:
        """Interval as seconds."""
        return self.interval.total_seconds()

    def start(self) -> None:
        """Arm the periodic trigger and launch the polling task."""
        if self.state is not PollerState.CREATED:
            raise RuntimeError(f"Poller for app {self.app_id} cannot be restarted")

        loop = asyncio.get_running_loop()
        self._next_tick = loop.time() + self.interval_seconds
        self.state = PollerState.RUNNING
        self._task = asyncio.create_task(
            self._run(), name=f"app-poller-{self.app_id}"
        )

    def stop(self) -> bool:
        """
        Signal the poller to exit and cancel any in-flight cycle.

        Returns:
            True if this call performed the transition to stopped
        """
        if self.state is PollerState.STOPPED:
            return False

        self.state = PollerState.STOPPED
        self._stop_event.set()
        if self._task and not self._task.done():
            self._task.cancel()
        return True

    async def wait_stopped(self) -> None:
        """Wait until the polling task has finished."""
        if self._task is not None:
            await asyncio.wait({self._task})

    def is_running(self) -> bool:
        """Check if the polling task is alive."""
        return (
            self.state is PollerState.RUNNING
            and self._task is not None
            and not self._task.done()
        )

    def status(self) -> PollerStatus:
        """Get the status entry reported for this poller."""
        return PollerStatus(interval=format_duration(self.interval), active=True)

    def _should_exit(self) -> bool:
        return self._stop_event.is_set() or self._shutdown_event.is_set()

    async def _run(self) -> None:
        logger.debug(
            "Poller started",
            app_id=self.app_id,
            interval=format_duration(self.interval),
        )
        try:
            while not self._should_exit():
                await self._run_one_cycle()
                if not await self._wait_for_tick():
                    break
        finally:
            logger.debug("Poller exited", app_id=self.app_id)

    async def _run_one_cycle(self) -> None:
        self.cycles_started += 1
        try:
            await asyncio.wait_for(
                self._run_cycle(self.app_id, self.interval),
                timeout=self.cycle_timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                "Polling cycle timed out",
                app_id=self.app_id,
                timeout_seconds=self.cycle_timeout_seconds,
            )
        except Exception as e:
            logger.error(
                "Polling cycle failed with unexpected error",
                app_id=self.app_id,
                error=str(e),
            )

    async def _wait_for_tick(self) -> bool:
        """
        Wait for the next tick.

        Returns:
            True on a tick, False when the poller should exit
        """
        loop = asyncio.get_running_loop()
        delay = max(0.0, self._next_tick - loop.time())

        if await self._wait_for_stop(delay):
            return False

        # Fixed-rate ticker: ticks missed during an overrunning cycle are dropped
        now = loop.time()
        self._next_tick += self.interval_seconds
        while self._next_tick <= now:
            self._next_tick += self.interval_seconds
        return True

    async def _wait_for_stop(self, timeout: float) -> bool:
        if self._should_exit():
            return True

        waiters = {
            asyncio.create_task(self._stop_event.wait()),
            asyncio.create_task(self._shutdown_event.wait()),
        }
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                waiter.cancel()
        return bool(done)
