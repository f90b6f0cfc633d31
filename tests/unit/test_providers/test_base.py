"""
Tests for base provider functionality.

Tests the abstract PricingProvider base class, its HTTP error mapping and
the provider factory.
"""

import httpx
import pytest

from cloud_pricing.providers import ProviderFactory
from cloud_pricing.providers.aws import AWSPricingProvider
from cloud_pricing.providers.base import (
    APIError,
    ConfigurationError,
    ParseError,
    PriceRecord,
    PricingProvider,
    ProviderName,
    RateLimitError,
)


class MockPricingProvider(PricingProvider):
    """Mock implementation of PricingProvider for testing."""

    default_region = "mock-1"

    def _get_provider_name(self) -> ProviderName:
        return ProviderName.AWS

    async def fetch(self) -> list[PriceRecord]:
        async with self.http_client() as client:
            payload = await self._get_json(client, "https://pricing.test/prices")
        return [
            PriceRecord(
                provider=ProviderName.AWS,
                description=item["name"],
                region=self.region,
                hourly_price_usd=item["price"],
            )
            for item in payload["items"]
        ]


def client_returning(response: httpx.Response) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response))


class TestPricingProvider:
    """Test cases for PricingProvider base class."""

    def test_provider_initialization(self):
        provider = MockPricingProvider()
        assert provider.config == {}
        assert provider.provider_name is ProviderName.AWS
        assert provider.region == "mock-1"
        assert provider.timeout == 30.0

    def test_provider_initialization_with_config(self):
        provider = MockPricingProvider({"region": "eu-west-1", "timeout": 5})
        assert provider.region == "eu-west-1"
        assert provider.timeout == 5.0

    def test_default_fallback_is_empty(self):
        assert MockPricingProvider().fallback_records() == []

    async def test_fetch_with_injected_client(self):
        client = client_returning(
            httpx.Response(200, json={"items": [{"name": "small", "price": "0.01"}]})
        )
        provider = MockPricingProvider(client=client)

        records = await provider.fetch()

        assert [r.description for r in records] == ["small"]
        await client.aclose()

    async def test_http_error_status_maps_to_api_error(self):
        provider = MockPricingProvider(client=client_returning(httpx.Response(503)))
        with pytest.raises(APIError) as exc_info:
            await provider.fetch()
        assert exc_info.value.status_code == 503
        assert exc_info.value.provider == "aws"

    async def test_rate_limit(self):
        response = httpx.Response(429, headers={"Retry-After": "30"})
        provider = MockPricingProvider(client=client_returning(response))
        with pytest.raises(RateLimitError) as exc_info:
            await provider.fetch()
        assert exc_info.value.retry_after == 30
        assert exc_info.value.status_code == 429

    async def test_invalid_json_maps_to_parse_error(self):
        provider = MockPricingProvider(client=client_returning(httpx.Response(200, text="<html>")))
        with pytest.raises(ParseError):
            await provider.fetch()

    async def test_transport_error_maps_to_api_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        provider = MockPricingProvider(client=client)
        with pytest.raises(APIError, match="connection refused"):
            await provider.fetch()
        await client.aclose()


class TestProviderFactory:
    """Test cases for ProviderFactory."""

    def test_builtin_providers_registered(self):
        assert {"aws", "azure", "gcp"} <= set(ProviderFactory.get_available_providers())

    def test_create_provider(self):
        provider = ProviderFactory.create_provider("AWS", {"region": "us-west-2"})
        assert isinstance(provider, AWSPricingProvider)
        assert provider.region == "us-west-2"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Unknown provider 'oracle'"):
            ProviderFactory.create_provider("oracle", {})
