"""
Periodic price refresh.

Runs one aggregation cycle when started and then one every refresh interval
until stopped, independent of request traffic.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum

from ..utils.data_normalizer import AggregateSnapshot, utc_now
from .aggregator import PriceAggregator

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Lifecycle states of the refresh scheduler."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class RefreshScheduler:
    """Drives the aggregator on a fixed period."""

    def __init__(self, aggregator: PriceAggregator, interval: float = 21600):
        self.aggregator = aggregator
        self.interval = interval
        self.state = SchedulerState.IDLE
        self.run_count = 0
        self.failure_count = 0
        self.last_run_at: datetime | None = None
        self.last_error: str | None = None
        self._active_runs = 0
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> AggregateSnapshot | None:
        """
        Run one refresh cycle.

        Joins the aggregator's in-flight cycle when one is already running.

        Returns:
            The resulting snapshot, or None if the cycle failed
        """
        self._active_runs += 1
        self.state = SchedulerState.RUNNING
        try:
            snapshot = await self.aggregator.aggregate()
        except Exception as e:
            self.failure_count += 1
            self.last_error = str(e)
            logger.error(f"Scheduled price refresh failed: {e}", exc_info=True)
            return None
        else:
            self.last_error = None
            return snapshot
        finally:
            self.run_count += 1
            self.last_run_at = utc_now()
            self._active_runs -= 1
            # overlapping callers share one cycle; the last one out goes idle
            if self._active_runs == 0 and self.state is SchedulerState.RUNNING:
                self.state = SchedulerState.IDLE

    async def start(self, run_immediately: bool = True):
        """Run the startup cycle, then schedule the periodic loop."""
        if self.is_active:
            return

        self._stop_event.clear()
        self.state = SchedulerState.IDLE
        if run_immediately:
            await self.run_once()

        self._task = asyncio.create_task(self._loop(), name="price-refresh")
        logger.info(f"Price refresh scheduled every {self.interval}s")

    async def _loop(self):
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.run_once()

    async def stop(self):
        """Stop the periodic loop, abandoning a cycle that is waiting on providers."""
        self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.state = SchedulerState.STOPPED
        logger.info("Price refresh stopped")

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "interval_seconds": self.interval,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
        }
