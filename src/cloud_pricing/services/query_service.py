"""Read path for aggregated prices."""

import logging

from ..utils.cache import PRICING_DATA_KEY, SnapshotCache
from ..utils.data_normalizer import AggregateSnapshot
from .aggregator import PriceAggregator

logger = logging.getLogger(__name__)


class PriceQueryService:
    """Serves the cached aggregate snapshot, aggregating only on a cold cache.

    Cached data is returned whatever its age; the refresh scheduler is the only
    thing that keeps it fresh. Concurrent cold reads share the aggregator's
    single in-flight cycle.
    """

    def __init__(self, cache: SnapshotCache, aggregator: PriceAggregator):
        self.cache = cache
        self.aggregator = aggregator
        self.cache_hits = 0
        self.cache_misses = 0

    async def get_prices(self) -> AggregateSnapshot:
        cached = await self.cache.get(PRICING_DATA_KEY)
        if cached is not None:
            self.cache_hits += 1
            return cached

        self.cache_misses += 1
        logger.info("Cache miss, fetching new pricing data")
        return await self.aggregator.aggregate()
