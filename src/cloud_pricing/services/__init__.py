"""Aggregation, refresh scheduling and read services."""

from .aggregator import AggregationReport, PriceAggregator, ProviderOutcome
from .query_service import PriceQueryService
from .scheduler import RefreshScheduler, SchedulerState
