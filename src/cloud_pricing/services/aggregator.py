"""
Price aggregation across cloud providers.

Runs every pricing adapter concurrently, isolates provider failures behind a
stale/static/empty fallback chain and publishes one aggregate snapshot per
cycle into the snapshot cache.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from ..providers.base import PricingProvider, ProviderName
from ..utils.cache import PRICING_DATA_KEY, SnapshotCache, provider_cache_key
from ..utils.data_normalizer import AggregateSnapshot, ProviderSnapshot, SnapshotSource, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderOutcome:
    """Which branch one provider took during a cycle."""

    provider: ProviderName
    source: SnapshotSource
    record_count: int
    error: str | None = None


@dataclass(frozen=True)
class AggregationReport:
    """An aggregate snapshot together with the per-provider outcomes that built it."""

    snapshot: AggregateSnapshot
    outcomes: dict[ProviderName, ProviderOutcome]

    @property
    def failed_providers(self) -> list[ProviderName]:
        return [
            provider for provider, outcome in self.outcomes.items() if outcome.error is not None
        ]

    def source_of(self, provider: ProviderName) -> SnapshotSource:
        return self.outcomes[provider].source


class PriceAggregator:
    """Builds aggregate snapshots from the configured pricing adapters.

    At most one cycle runs at a time: callers arriving while a cycle is in
    flight wait for it and receive the same snapshot.
    """

    def __init__(
        self,
        providers: Iterable[PricingProvider],
        cache: SnapshotCache,
        static_fallback: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the aggregator.

        Args:
            providers: One adapter per provider; providers without one report empty data
            cache: Snapshot cache used for fallback reads and result writes
            static_fallback: Use an adapter's built-in list when the cache has nothing
            clock: Source of the ``last_updated`` timestamp
        """
        self.providers: dict[ProviderName, PricingProvider] = {
            provider.provider_name: provider for provider in providers
        }
        self.cache = cache
        self.static_fallback = static_fallback
        self._clock = clock
        self._in_flight: asyncio.Task | None = None
        self.cycle_count = 0
        self.last_report: AggregationReport | None = None

    @property
    def is_running(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    async def aggregate(self) -> AggregateSnapshot:
        """Run (or join) an aggregation cycle and return its snapshot."""
        report = await self.aggregate_with_report()
        return report.snapshot

    async def aggregate_with_report(self) -> AggregationReport:
        """Run (or join) an aggregation cycle and return its full report."""
        if not self.is_running:
            self._in_flight = asyncio.create_task(self._run_cycle(), name="price-aggregation")
        # A cancelled caller must not cancel the cycle other callers are waiting on
        return await asyncio.shield(self._in_flight)

    async def close(self):
        """Cancel an in-flight cycle, if any."""
        if self.is_running:
            self._in_flight.cancel()
            try:
                await self._in_flight
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"In-flight aggregation ended with {e!r} during shutdown")
        self._in_flight = None

    async def _fetch_snapshot(self, provider: ProviderName) -> ProviderSnapshot:
        records = await self.providers[provider].fetch()
        return ProviderSnapshot.from_records(provider, records)

    async def _fallback(
        self, provider: ProviderName, error: Exception
    ) -> tuple[ProviderSnapshot, SnapshotSource]:
        """Pick the best available data for a provider whose fetch failed."""
        cached = await self.cache.get(provider_cache_key(provider))
        if cached is not None:
            return cached, SnapshotSource.STALE

        adapter = self.providers.get(provider)
        if self.static_fallback and adapter is not None:
            records = adapter.fallback_records()
            if records:
                return ProviderSnapshot.from_records(provider, records), SnapshotSource.STATIC

        return ProviderSnapshot.empty(provider), SnapshotSource.EMPTY

    async def _run_cycle(self) -> AggregationReport:
        logger.info("Starting price update")

        active = [provider for provider in ProviderName if provider in self.providers]
        results = await asyncio.gather(
            *(self._fetch_snapshot(provider) for provider in active), return_exceptions=True
        )

        snapshots: dict[ProviderName, ProviderSnapshot] = {}
        fresh: dict[ProviderName, ProviderSnapshot] = {}
        outcomes: dict[ProviderName, ProviderOutcome] = {}

        for provider, result in zip(active, results):
            if isinstance(result, ProviderSnapshot):
                snapshots[provider] = fresh[provider] = result
                outcomes[provider] = ProviderOutcome(provider, SnapshotSource.FRESH, len(result))
                continue

            if not isinstance(result, Exception):
                raise result

            # some exceptions (asyncio.TimeoutError) carry no message
            error = str(result) or type(result).__name__
            logger.error(
                f"{provider.value} fetch failed: {error}",
                extra={"provider": provider.key, "error": error},
            )
            snapshot, source = await self._fallback(provider, result)
            logger.warning(f"Serving {source.value} data for {provider.value} ({len(snapshot)} records)")
            snapshots[provider] = snapshot
            outcomes[provider] = ProviderOutcome(provider, source, len(snapshot), error=error)

        # Providers without an adapter report empty data
        outcomes = {
            provider: outcomes.get(provider) or ProviderOutcome(provider, SnapshotSource.EMPTY, 0)
            for provider in ProviderName
        }

        aggregate = AggregateSnapshot.from_providers(snapshots, last_updated=self._clock())

        updates: dict[str, object] = {
            provider_cache_key(provider): snapshot for provider, snapshot in fresh.items()
        }
        updates[PRICING_DATA_KEY] = aggregate
        await self.cache.set_many(updates)

        report = AggregationReport(snapshot=aggregate, outcomes=outcomes)
        self.last_report = report
        self.cycle_count += 1

        summary = ", ".join(
            f"{outcome.provider.key}={outcome.record_count} ({outcome.source.value})"
            for outcome in outcomes.values()
        )
        logger.info(
            f"Price update completed: {summary}",
            extra={
                "event": "price_update",
                "counts": aggregate.record_counts,
                "sources": {p.key: o.source.value for p, o in outcomes.items()},
                "failures": [p.key for p in report.failed_providers],
                "last_updated": aggregate.last_updated.isoformat(),
            },
        )
        return report
