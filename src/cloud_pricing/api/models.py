"""
API data models for price aggregation.

Contains Pydantic models used across the API layer.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..providers.base import PriceRecord
from ..utils.data_normalizer import AggregateSnapshot


class PriceDisplay(BaseModel):
    hourly: str
    monthly: str
    yearly: str


class PriceRecordResponse(BaseModel):
    provider: str
    description: str
    category: str
    vcpu: str
    memory: str
    region: str
    price: PriceDisplay
    generation: str

    @classmethod
    def from_record(cls, record: PriceRecord) -> "PriceRecordResponse":
        return cls(
            provider=record.provider.value,
            description=record.description,
            category=record.category.value,
            vcpu=record.vcpu,
            memory=record.memory,
            region=record.region,
            price=PriceDisplay(**record.display_prices()),
            generation=record.generation.value,
        )


class PricesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    aws: list[PriceRecordResponse]
    azure: list[PriceRecordResponse]
    gcp: list[PriceRecordResponse]
    last_updated: datetime = Field(alias="lastUpdated")

    @classmethod
    def from_snapshot(cls, snapshot: AggregateSnapshot) -> "PricesResponse":
        return cls(
            aws=[PriceRecordResponse.from_record(r) for r in snapshot.aws.records],
            azure=[PriceRecordResponse.from_record(r) for r in snapshot.azure.records],
            gcp=[PriceRecordResponse.from_record(r) for r in snapshot.gcp.records],
            last_updated=snapshot.last_updated,
        )


class HealthCheck(BaseModel):
    status: str


class ErrorResponse(BaseModel):
    error: str
    message: str


class ServiceStatus(BaseModel):
    cache: dict[str, Any]
    scheduler: dict[str, Any]
    providers: dict[str, dict[str, Any]]
    cache_hits: int
    cache_misses: int
