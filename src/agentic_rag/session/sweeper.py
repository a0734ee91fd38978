"""
Background session expiry.

Runs the session store's sweep on a fixed interval, independent of request
traffic. Started and stopped by the application lifespan.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..domain.ports import ISessionStore

logger = logging.getLogger(__name__)


@dataclass
class SweeperMetrics:
    """Metrics for monitoring the sweeper."""

    runs: int = 0
    sessions_removed: int = 0
    failures: int = 0


class SessionSweeper:
    """Periodic task that evicts idle sessions.

    Usage:
        sweeper = SessionSweeper(store, ttl_seconds=3600, interval_seconds=60)
        await sweeper.start()

        # On shutdown
        await sweeper.stop()

    Attributes:
        ttl_seconds: Idle time after which a session is removed
        interval_seconds: Delay between sweeps
    """

    def __init__(
        self,
        store: ISessionStore,
        ttl_seconds: float = 3600.0,
        interval_seconds: float = 60.0,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.interval_seconds = interval_seconds

        self._task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()
        self._metrics = SweeperMetrics()

    @property
    def metrics(self) -> SweeperMetrics:
        return self._metrics

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop."""
        if self.running:
            return

        self._shutdown_event.clear()
        self._task = asyncio.create_task(self._sweep_loop(), name="session-sweeper")
        logger.info(
            f"Session sweeper started (ttl={self.ttl_seconds}s, "
            f"interval={self.interval_seconds}s)"
        )

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop the sweep loop.

        Args:
            timeout: Maximum time to wait for an in-progress sweep
        """
        if not self._task:
            return

        self._shutdown_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Session sweeper did not stop in time, cancelling")
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

        logger.info("Session sweeper stopped")

    async def run_once(self) -> int:
        """Run a single sweep, logging instead of raising on failure."""
        self._metrics.runs += 1
        try:
            removed = await self.store.sweep(self.ttl_seconds)
        except Exception as e:
            self._metrics.failures += 1
            logger.exception(f"Session sweep failed: {e}")
            return 0
        self._metrics.sessions_removed += removed
        return removed

    async def _sweep_loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.interval_seconds,
                )
            except asyncio.TimeoutError:
                await self.run_once()
