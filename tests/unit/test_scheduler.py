"""
Tests for the periodic refresh scheduler.
"""

import asyncio

import pytest

from cloud_pricing.providers.base import APIError, ProviderName
from cloud_pricing.services.aggregator import PriceAggregator
from cloud_pricing.services.scheduler import RefreshScheduler, SchedulerState
from cloud_pricing.utils.cache import SnapshotCache


async def wait_for_runs(scheduler: RefreshScheduler, count: int, timeout: float = 2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while scheduler.run_count < count:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"only {scheduler.run_count} runs after {timeout}s")
        await asyncio.sleep(0.01)


class TestRefreshScheduler:
    """Test cases for RefreshScheduler."""

    async def test_runs_immediately_on_start(self, sample_providers, cache):
        aggregator = PriceAggregator(sample_providers.values(), cache)
        scheduler = RefreshScheduler(aggregator, interval=3600)

        await scheduler.start()
        try:
            assert scheduler.run_count == 1
            assert aggregator.cycle_count == 1
            assert scheduler.is_active
            assert scheduler.state is SchedulerState.IDLE
            assert scheduler.last_run_at is not None
        finally:
            await scheduler.stop()

    async def test_start_without_immediate_run(self, sample_providers, cache):
        aggregator = PriceAggregator(sample_providers.values(), cache)
        scheduler = RefreshScheduler(aggregator, interval=3600)

        await scheduler.start(run_immediately=False)
        try:
            assert scheduler.run_count == 0
        finally:
            await scheduler.stop()

    async def test_repeats_every_interval(self, sample_providers, cache):
        aggregator = PriceAggregator(sample_providers.values(), cache)
        scheduler = RefreshScheduler(aggregator, interval=0.02)

        await scheduler.start()
        try:
            await wait_for_runs(scheduler, 3)
        finally:
            await scheduler.stop()

        assert aggregator.cycle_count >= 3

    async def test_keeps_running_after_failed_cycle(self, sample_providers):
        """A cycle that raises is counted and the next tick still fires."""
        cache = SnapshotCache()
        await cache.close()
        aggregator = PriceAggregator(sample_providers.values(), cache)
        scheduler = RefreshScheduler(aggregator, interval=0.02)

        await scheduler.start()
        try:
            assert scheduler.failure_count == 1
            assert "closed" in scheduler.last_error
            await wait_for_runs(scheduler, 2)
        finally:
            await scheduler.stop()

        assert scheduler.failure_count >= 2

    async def test_provider_failures_are_not_scheduler_failures(self, stub_provider, cache):
        adapter = stub_provider(ProviderName.AWS, error=APIError("down"))
        scheduler = RefreshScheduler(PriceAggregator([adapter], cache), interval=3600)

        snapshot = await scheduler.run_once()

        assert snapshot is not None
        assert snapshot.aws.records == ()
        assert scheduler.failure_count == 0
        assert scheduler.last_error is None

    async def test_stop(self, sample_providers, cache):
        aggregator = PriceAggregator(sample_providers.values(), cache)
        scheduler = RefreshScheduler(aggregator, interval=0.01)

        await scheduler.start()
        await scheduler.stop()
        runs = scheduler.run_count
        await asyncio.sleep(0.05)

        assert scheduler.state is SchedulerState.STOPPED
        assert not scheduler.is_active
        assert scheduler.run_count == runs

    async def test_tick_joins_in_flight_cycle(self, stub_provider, cache):
        gate = asyncio.Event()
        adapter = stub_provider(ProviderName.AWS, prices=["0.01"], gate=gate)
        aggregator = PriceAggregator([adapter], cache)
        scheduler = RefreshScheduler(aggregator, interval=3600)

        cold_read = asyncio.create_task(aggregator.aggregate())
        await asyncio.sleep(0)
        tick = asyncio.create_task(scheduler.run_once())
        await asyncio.sleep(0)
        gate.set()

        assert await tick is await cold_read
        assert adapter.calls == 1

    async def test_stays_running_while_another_run_is_in_flight(self, stub_provider, cache):
        gate = asyncio.Event()
        adapter = stub_provider(ProviderName.AWS, prices=["0.01"], gate=gate)
        scheduler = RefreshScheduler(PriceAggregator([adapter], cache), interval=3600)

        manual = asyncio.create_task(scheduler.run_once())
        await asyncio.sleep(0)
        tick = asyncio.create_task(scheduler.run_once())
        await asyncio.sleep(0)
        assert scheduler.state is SchedulerState.RUNNING

        manual.cancel()
        with pytest.raises(asyncio.CancelledError):
            await manual
        assert scheduler.state is SchedulerState.RUNNING

        gate.set()
        assert await tick is not None
        assert scheduler.state is SchedulerState.IDLE
        assert scheduler.run_count == 2
        assert adapter.calls == 1

    async def test_status(self, sample_providers, cache):
        scheduler = RefreshScheduler(PriceAggregator(sample_providers.values(), cache), interval=60)
        await scheduler.run_once()

        status = scheduler.status()

        assert status["state"] == "idle"
        assert status["interval_seconds"] == 60
        assert status["run_count"] == 1
        assert status["failure_count"] == 0
        assert status["last_error"] is None
