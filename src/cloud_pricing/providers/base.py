"""
Abstract base provider class for multi-cloud price aggregation.

Defines the normalized price record shared by every provider and the interface
that all pricing adapters must follow.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

HOURS_PER_MONTH = Decimal("730")
MONTHS_PER_YEAR = Decimal("12")

_CENTS = Decimal("0.01")
_HOURLY_PRECISION = Decimal("0.0001")


class ProviderName(str, Enum):
    """Supported cloud providers."""

    AWS = "AWS"
    AZURE = "Azure"
    GCP = "GCP"

    @property
    def key(self) -> str:
        """Lowercase identifier used in cache keys, config sections and the wire format."""
        return self.value.lower()

    @classmethod
    def from_key(cls, key: str) -> "ProviderName":
        normalized = key.lower().strip()
        for member in cls:
            if member.key == normalized:
                return member
        valid = ", ".join(member.key for member in cls)
        raise ValueError(f'Invalid provider "{key}". Must be one of: {valid}')


class InstanceCategory(str, Enum):
    """Instance families, normalized across providers."""

    GENERAL_PURPOSE = "General Purpose"
    COMPUTE_OPTIMIZED = "Compute Optimized"
    MEMORY_OPTIMIZED = "Memory Optimized"
    STORAGE_OPTIMIZED = "Storage Optimized"
    GPU_OPTIMIZED = "GPU Optimized"
    HIGH_PERFORMANCE = "High Performance"


class Generation(str, Enum):
    """Instance generation."""

    CURRENT = "Current"
    PREVIOUS = "Previous"


def format_usd(amount: Decimal, precision: Decimal = _CENTS) -> str:
    """Format a USD amount as ``$`` followed by a fixed number of decimals."""
    return f"${amount.quantize(precision, rounding=ROUND_HALF_UP)}"


class PriceRecord(BaseModel):
    """One priceable SKU from one provider.

    Only the hourly price is stored. Monthly and yearly prices are always
    derived from it.
    """

    model_config = ConfigDict(frozen=True)

    provider: ProviderName
    description: str
    category: InstanceCategory = InstanceCategory.GENERAL_PURPOSE
    vcpu: str = "N/A"
    memory: str = "N/A"
    region: str
    hourly_price_usd: Decimal = Field(..., ge=0)
    generation: Generation = Generation.CURRENT

    @field_validator("hourly_price_usd", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Any:
        """Convert floats through their string form so 0.01 stays 0.01."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("description", "region")
    @classmethod
    def validate_names(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Value must not be empty")
        return stripped

    @field_validator("vcpu", "memory", mode="before")
    @classmethod
    def normalize_specs(cls, v: Any) -> str:
        if v is None:
            return "N/A"
        text = str(v).strip()
        return text or "N/A"

    @property
    def monthly_price_usd(self) -> Decimal:
        return (self.hourly_price_usd * HOURS_PER_MONTH).quantize(_CENTS, rounding=ROUND_HALF_UP)

    @property
    def yearly_price_usd(self) -> Decimal:
        yearly = self.hourly_price_usd * HOURS_PER_MONTH * MONTHS_PER_YEAR
        return yearly.quantize(_CENTS, rounding=ROUND_HALF_UP)

    def display_prices(self) -> dict[str, str]:
        """Hourly, monthly and yearly prices as currency strings."""
        return {
            "hourly": format_usd(self.hourly_price_usd, _HOURLY_PRECISION),
            "monthly": format_usd(self.monthly_price_usd),
            "yearly": format_usd(self.yearly_price_usd),
        }


class CloudProviderError(Exception):
    """Base exception for cloud provider errors."""

    pass


class APIError(CloudProviderError):
    """API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, provider: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class RateLimitError(APIError):
    """Rate limiting errors."""

    def __init__(self, message: str, retry_after: int | None = None, provider: str | None = None):
        super().__init__(message, status_code=429, provider=provider)
        self.retry_after = retry_after


class ParseError(CloudProviderError):
    """Upstream payload did not have the expected shape."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ConfigurationError(CloudProviderError):
    """Configuration-related errors."""

    pass


class PricingProvider(ABC):
    """Abstract base class for cloud pricing adapters."""

    default_region: str = ""

    def __init__(self, config: dict[str, Any] | None = None, client: httpx.AsyncClient | None = None):
        """
        Initialize the pricing adapter with configuration.

        Args:
            config: Provider-specific configuration dictionary
            client: Optional shared HTTP client; one is created per fetch otherwise
        """
        self.config = dict(config or {})
        self.provider_name = self._get_provider_name()
        self.region = self.config.get("region") or self.default_region
        self.timeout = float(self.config.get("timeout", 30))
        self._client = client

    @abstractmethod
    def _get_provider_name(self) -> ProviderName:
        """Return the provider this adapter serves."""
        pass

    @abstractmethod
    async def fetch(self) -> list[PriceRecord]:
        """
        Fetch and normalize the current on-demand price list.

        Returns:
            Normalized price records for this provider

        Raises:
            APIError: If the upstream call fails
            ParseError: If the upstream payload is malformed or empty
        """
        pass

    def fallback_records(self) -> list[PriceRecord]:
        """Built-in static price list used when nothing better is available."""
        return []

    @asynccontextmanager
    async def http_client(self):
        """Yield the shared client, or a short-lived one when none was injected."""
        if self._client is not None:
            yield self._client
            return

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET a JSON document, mapping transport and status failures to provider errors."""
        provider = self.provider_name.key
        try:
            response = await client.get(url, params=params, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise APIError(f"Request to {url} failed: {e}", provider=provider) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"Rate limited by {url}",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                provider=provider,
            )
        if response.status_code >= 400:
            raise APIError(
                f"{url} returned HTTP {response.status_code}",
                status_code=response.status_code,
                provider=provider,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {url}: {e}", provider=provider) from e


class ProviderFactory:
    """Factory class for creating pricing adapter instances."""

    _providers: dict[str, type] = {}

    @classmethod
    def register_provider(cls, name: str, provider_class: type):
        """Register a provider class with the factory."""
        cls._providers[name.lower()] = provider_class

    @classmethod
    def create_provider(
        cls, name: str, config: dict[str, Any], client: httpx.AsyncClient | None = None
    ) -> PricingProvider:
        """
        Create a provider instance.

        Args:
            name: Provider name (aws, azure, gcp)
            config: Provider configuration
            client: Optional shared HTTP client

        Returns:
            Provider instance

        Raises:
            ConfigurationError: If provider not found
        """
        name = name.lower()
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ConfigurationError(f"Unknown provider '{name}'. Available providers: {available}")

        provider_class = cls._providers[name]
        return provider_class(config, client=client)

    @classmethod
    def get_available_providers(cls) -> list[str]:
        """Get list of available provider names."""
        return list(cls._providers.keys())
