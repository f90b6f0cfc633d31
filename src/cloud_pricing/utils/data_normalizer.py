"""
Data normalization utilities for multi-cloud price aggregation.

Provides the immutable snapshot structures that hold normalized price records
per provider and across all providers.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator

from ..providers.base import PriceRecord, ProviderName

logger = logging.getLogger(__name__)


class SnapshotSource(Enum):
    """Where a provider's data came from in one aggregation cycle."""

    FRESH = "fresh"
    STALE = "stale"
    STATIC = "static"
    EMPTY = "empty"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProviderSnapshot(BaseModel):
    """Price records for one provider, sorted ascending by hourly price."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderName
    records: tuple[PriceRecord, ...] = ()
    captured_at: datetime

    @model_validator(mode="after")
    def validate_records(self):
        """Records must belong to this provider and be ordered by hourly price."""
        for record in self.records:
            if record.provider != self.provider:
                raise ValueError(
                    f"Record {record.description} belongs to {record.provider.value}, "
                    f"not {self.provider.value}"
                )

        prices = [record.hourly_price_usd for record in self.records]
        if any(later < earlier for earlier, later in zip(prices, prices[1:])):
            raise ValueError("Snapshot records must be sorted by hourly price")

        return self

    @classmethod
    def from_records(
        cls,
        provider: ProviderName,
        records: Iterable[PriceRecord],
        captured_at: datetime | None = None,
    ) -> "ProviderSnapshot":
        """Build a snapshot, stable-sorting records by hourly price."""
        ordered = sorted(records, key=lambda record: record.hourly_price_usd)
        return cls(provider=provider, records=tuple(ordered), captured_at=captured_at or utc_now())

    @classmethod
    def empty(cls, provider: ProviderName, captured_at: datetime | None = None) -> "ProviderSnapshot":
        return cls(provider=provider, records=(), captured_at=captured_at or utc_now())

    def __len__(self) -> int:
        return len(self.records)


class AggregateSnapshot(BaseModel):
    """The three provider snapshots captured by one aggregation cycle."""

    model_config = ConfigDict(frozen=True)

    aws: ProviderSnapshot
    azure: ProviderSnapshot
    gcp: ProviderSnapshot
    last_updated: datetime

    @model_validator(mode="after")
    def validate_slots(self):
        for provider in ProviderName:
            snapshot = getattr(self, provider.key)
            if snapshot.provider != provider:
                raise ValueError(f"{provider.key} slot holds a {snapshot.provider.value} snapshot")
        return self

    @classmethod
    def from_providers(
        cls, snapshots: dict[ProviderName, ProviderSnapshot], last_updated: datetime | None = None
    ) -> "AggregateSnapshot":
        """Assemble an aggregate, filling any missing provider with an empty snapshot."""
        completed_at = last_updated or utc_now()
        slots = {}
        for provider in ProviderName:
            snapshot = snapshots.get(provider)
            if snapshot is None:
                snapshot = ProviderSnapshot.empty(provider, completed_at)
            slots[provider.key] = snapshot
        return cls(**slots, last_updated=completed_at)

    @classmethod
    def empty(cls, last_updated: datetime | None = None) -> "AggregateSnapshot":
        return cls.from_providers({}, last_updated)

    def for_provider(self, provider: ProviderName) -> ProviderSnapshot:
        return getattr(self, provider.key)

    @property
    def provider_snapshots(self) -> dict[ProviderName, ProviderSnapshot]:
        return {provider: self.for_provider(provider) for provider in ProviderName}

    @property
    def record_counts(self) -> dict[str, int]:
        return {provider.key: len(self.for_provider(provider)) for provider in ProviderName}

    @property
    def total_records(self) -> int:
        return sum(self.record_counts.values())
