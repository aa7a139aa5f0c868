"""Background timer for automatic refresh."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class AutoRefreshScheduler:
    """Background scheduler that calls a refresh coroutine at a fixed interval."""

    def __init__(self, refresh: Callable[[], Awaitable[object]], interval_minutes: int = 30):
        """Initialize scheduler.

        Args:
            refresh: Coroutine function to run on every tick
            interval_minutes: Minutes between refreshes
        """
        self.refresh = refresh
        self.interval_minutes = interval_minutes
        self._task: asyncio.Task | None = None
        self._running = False

    def start(self, interval_minutes: int | None = None) -> None:
        """Start the background refresh timer.

        Must be called from a running event loop. Calling it while already
        running does nothing.

        Args:
            interval_minutes: Optional interval override
        """
        if self._running:
            return

        if interval_minutes is not None:
            self.interval_minutes = interval_minutes

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Auto-refresh timer set up to refresh every {self.interval_minutes} minutes")

    def stop(self) -> None:
        """Stop the background timer."""
        self._running = False
        if self._task:
            self._task.cancel()
            self._task = None
        logger.info("Auto-refresh timer stopped")

    def restart(self, interval_minutes: int | None = None) -> None:
        """Stop and start again, picking up a new interval."""
        self.stop()
        self.start(interval_minutes)

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    def seconds_until_next_run(self) -> float:
        """Return the sleep time between two refreshes."""
        return self.interval_minutes * 60.0

    async def _run_loop(self) -> None:
        """Background loop for periodic refresh."""
        while self._running:
            try:
                await asyncio.sleep(self.seconds_until_next_run())

                if self._running:
                    logger.info("Performing automatic refresh...")
                    await self.refresh()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Auto-refresh error: {e}")
