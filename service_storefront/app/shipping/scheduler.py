"""
Fixed-interval scheduler for the reconciliation job.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from shared.logging import get_logger


class ReconciliationScheduler:
    """Runs a job at wall-clock interval boundaries.

    With the default three-hour interval the job fires at 00:00, 03:00,
    06:00 ... UTC. No jitter, and the last run time is not persisted: after a
    restart the next run is simply the next boundary.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        interval_seconds: int = 10800,
        run_on_start: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.job = job
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self.clock = clock
        self.logger = get_logger("storefront.shipping.scheduler")

        self.running = False
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        self.running = True
        self._task = asyncio.create_task(self._schedule_loop())
        self.logger.info(
            "Reconciliation scheduler started",
            interval=self.interval_seconds,
            next_run_in=round(self.seconds_until_next_run(), 1),
        )

    async def stop(self):
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.logger.info("Reconciliation scheduler stopped")

    def seconds_until_next_run(self) -> float:
        """Seconds until the next interval boundary."""
        return self.interval_seconds - (self.clock() % self.interval_seconds)

    async def _schedule_loop(self):
        if self.run_on_start:
            await self.run_once()

        while self.running:
            await asyncio.sleep(self.seconds_until_next_run())
            await self.run_once()

    async def run_once(self):
        """Run the job, logging failures instead of raising them."""
        self.runs += 1
        try:
            await self.job()
        except Exception as e:
            self.logger.error("Scheduled reconciliation failed", run=self.runs, error=str(e))
