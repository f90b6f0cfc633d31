"""
Pytest configuration and shared fixtures for price aggregator tests.

This module provides common fixtures and configurations used across
all test modules in the price aggregation service.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cloud_pricing.config.settings import PricingConfig
from cloud_pricing.providers.base import (
    Generation,
    InstanceCategory,
    PriceRecord,
    PricingProvider,
    ProviderName,
)
from cloud_pricing.utils.cache import SnapshotCache


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "aws: mark test as AWS-specific")
    config.addinivalue_line("markers", "azure: mark test as Azure-specific")
    config.addinivalue_line("markers", "gcp: mark test as GCP-specific")


def build_record(
    provider: ProviderName, hourly, description: str | None = None, **kwargs
) -> PriceRecord:
    """Create a PriceRecord with sensible defaults for tests."""
    return PriceRecord(
        provider=provider,
        description=description or f"{provider.key}-{hourly}",
        category=kwargs.pop("category", InstanceCategory.GENERAL_PURPOSE),
        vcpu=kwargs.pop("vcpu", "2"),
        memory=kwargs.pop("memory", "4 GB"),
        region=kwargs.pop("region", "Test Region"),
        hourly_price_usd=Decimal(str(hourly)),
        generation=kwargs.pop("generation", Generation.CURRENT),
    )


class StubProvider(PricingProvider):
    """Pricing adapter returning canned records or raising a configured error."""

    def __init__(
        self,
        name: ProviderName,
        prices=(),
        error: Exception | None = None,
        fallback: list[PriceRecord] | None = None,
        gate: asyncio.Event | None = None,
    ):
        self._name = name
        super().__init__({"region": "test-region"})
        self.prices = list(prices)
        self.error = error
        self.fallback = list(fallback or [])
        self.gate = gate
        self.calls = 0

    def _get_provider_name(self) -> ProviderName:
        return self._name

    async def fetch(self) -> list[PriceRecord]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return [
            build_record(self._name, price, f"{self._name.key}-{index}")
            for index, price in enumerate(self.prices)
        ]

    def fallback_records(self) -> list[PriceRecord]:
        return list(self.fallback)


@pytest.fixture
def make_record() -> Callable[..., PriceRecord]:
    """Factory for PriceRecord instances."""
    return build_record


@pytest.fixture
def stub_provider() -> type[StubProvider]:
    """The StubProvider class, for building adapters inside tests."""
    return StubProvider


@pytest.fixture
def sample_providers() -> dict[ProviderName, StubProvider]:
    """One single-record adapter per provider, priced 0.01 / 0.02 / 0.03."""
    return {
        ProviderName.AWS: StubProvider(ProviderName.AWS, prices=["0.01"]),
        ProviderName.AZURE: StubProvider(ProviderName.AZURE, prices=["0.02"]),
        ProviderName.GCP: StubProvider(ProviderName.GCP, prices=["0.03"]),
    }


@pytest.fixture
async def cache():
    """Snapshot cache without a running sweep task."""
    store = SnapshotCache(default_ttl=3600, sweep_interval=3600)
    yield store
    await store.close()


@pytest.fixture
def tick_clock() -> Callable[[], datetime]:
    """Clock that advances one minute on every call."""
    state = {"now": datetime(2024, 1, 1, tzinfo=timezone.utc)}

    def clock() -> datetime:
        state["now"] += timedelta(minutes=1)
        return state["now"]

    return clock


@pytest.fixture
def test_config() -> PricingConfig:
    """Configuration with fast timers and no config files."""
    return PricingConfig.from_overrides(
        **{
            "refresh.interval_seconds": 3600,
            "cache.ttl_seconds": 3600,
            "cache.sweep_interval_seconds": 3600,
            "server.port": 5050,
        }
    )
