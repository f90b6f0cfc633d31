"""
AWS EC2 pricing provider implementation.

Reads on-demand Linux prices for one region from the public AWS Price List
bulk API.
"""

import logging
from typing import Any

from pydantic import ValidationError

from .base import (
    Generation,
    InstanceCategory,
    ParseError,
    PriceRecord,
    PricingProvider,
    ProviderFactory,
    ProviderName,
)

logger = logging.getLogger(__name__)

PRICING_HOST = "https://pricing.us-east-1.amazonaws.com"
REGION_INDEX_PATH = "/offers/v1.0/aws/AmazonEC2/current/region_index.json"

AWS_REGIONS = {
    "us-east-1": "US East (N. Virginia)",
    "us-west-2": "US West (Oregon)",
    "eu-west-1": "EU (Ireland)",
    "ap-southeast-1": "Asia Pacific (Singapore)",
}

# description, category, vcpu, memory, hourly
_FALLBACK_PRICES = [
    ("t3.micro", InstanceCategory.GENERAL_PURPOSE, "2", "1 GB", "0.0104"),
    ("t3.small", InstanceCategory.GENERAL_PURPOSE, "2", "2 GB", "0.0208"),
    ("t3.medium", InstanceCategory.GENERAL_PURPOSE, "2", "4 GB", "0.0416"),
    ("t3.large", InstanceCategory.GENERAL_PURPOSE, "2", "8 GB", "0.0832"),
    ("t3.xlarge", InstanceCategory.GENERAL_PURPOSE, "4", "16 GB", "0.1664"),
    ("c5.large", InstanceCategory.COMPUTE_OPTIMIZED, "2", "4 GB", "0.085"),
    ("c5.xlarge", InstanceCategory.COMPUTE_OPTIMIZED, "4", "8 GB", "0.17"),
    ("c5.2xlarge", InstanceCategory.COMPUTE_OPTIMIZED, "8", "16 GB", "0.34"),
    ("r5.large", InstanceCategory.MEMORY_OPTIMIZED, "2", "16 GB", "0.126"),
    ("r5.xlarge", InstanceCategory.MEMORY_OPTIMIZED, "4", "32 GB", "0.252"),
    ("r5.2xlarge", InstanceCategory.MEMORY_OPTIMIZED, "8", "64 GB", "0.504"),
    ("m5.large", InstanceCategory.GENERAL_PURPOSE, "2", "8 GB", "0.096"),
    ("m5.xlarge", InstanceCategory.GENERAL_PURPOSE, "4", "16 GB", "0.192"),
    ("m5.2xlarge", InstanceCategory.GENERAL_PURPOSE, "8", "32 GB", "0.384"),
]


def classify_instance(instance_type: str) -> InstanceCategory:
    """Map an EC2 instance type to a category by its family prefix."""
    name = instance_type.lower()
    if name.startswith("t"):
        return InstanceCategory.GENERAL_PURPOSE
    if name.startswith("c"):
        return InstanceCategory.COMPUTE_OPTIMIZED
    if name.startswith("r"):
        return InstanceCategory.MEMORY_OPTIMIZED
    if name.startswith("i"):
        return InstanceCategory.STORAGE_OPTIMIZED
    if name.startswith(("g", "p")):
        return InstanceCategory.GPU_OPTIMIZED
    return InstanceCategory.GENERAL_PURPOSE


def _on_demand_price(terms: dict[str, Any], product_id: str) -> str | None:
    product_terms = list((terms.get(product_id) or {}).values())
    if not product_terms:
        return None

    dimensions = list((product_terms[0].get("priceDimensions") or {}).values())
    if not dimensions:
        return None

    return (dimensions[0].get("pricePerUnit") or {}).get("USD")


def parse_price_list(payload: dict[str, Any], region: str) -> list[PriceRecord]:
    """
    Convert an EC2 regional price list into price records.

    Args:
        payload: Decoded regional price list document
        region: Region code the document was fetched for

    Returns:
        Shared-tenancy Linux instances with an on-demand price

    Raises:
        ParseError: If the document lacks products or on-demand terms
    """
    try:
        products = payload["products"]
        terms = payload["terms"]["OnDemand"]
    except (KeyError, TypeError) as e:
        raise ParseError(f"AWS price list is missing {e}", provider="aws") from e

    region_name = AWS_REGIONS.get(region, region)
    records = []

    for product_id, product in products.items():
        if not isinstance(product, dict):
            continue
        attributes = product.get("attributes") or {}
        if (
            product.get("productFamily") != "Compute Instance"
            or attributes.get("operatingSystem") != "Linux"
            or attributes.get("tenancy") != "Shared"
        ):
            continue

        price = _on_demand_price(terms, product_id)
        if price is None:
            continue

        instance_type = attributes.get("instanceType") or ""
        if not instance_type:
            continue

        try:
            record = PriceRecord(
                provider=ProviderName.AWS,
                description=instance_type,
                category=classify_instance(instance_type),
                vcpu=attributes.get("vcpu"),
                memory=attributes.get("memory"),
                region=region_name,
                hourly_price_usd=price,
                generation=(
                    Generation.PREVIOUS
                    if "Previous" in (attributes.get("instanceFamily") or "")
                    else Generation.CURRENT
                ),
            )
        except ValidationError as e:
            logger.debug(f"Skipping AWS product {product_id}: {e}")
            continue
        records.append(record)

    return records


class AWSPricingProvider(PricingProvider):
    """AWS Price List API provider implementation."""

    default_region = "us-east-1"

    def _get_provider_name(self) -> ProviderName:
        return ProviderName.AWS

    async def fetch(self) -> list[PriceRecord]:
        logger.info(f"Starting AWS price fetch for {self.region}")

        async with self.http_client() as client:
            index = await self._get_json(client, f"{PRICING_HOST}{REGION_INDEX_PATH}")
            try:
                version_url = index["regions"][self.region]["currentVersionUrl"]
            except (KeyError, TypeError) as e:
                raise ParseError(
                    f"AWS region index has no price list for {self.region}", provider="aws"
                ) from e

            payload = await self._get_json(client, f"{PRICING_HOST}{version_url}")

        records = parse_price_list(payload, self.region)
        if not records:
            raise ParseError(f"AWS price list for {self.region} had no instances", provider="aws")

        logger.info(f"AWS price fetch completed successfully: {len(records)} instances")
        return records

    def fallback_records(self) -> list[PriceRecord]:
        return [
            PriceRecord(
                provider=ProviderName.AWS,
                description=description,
                category=category,
                vcpu=vcpu,
                memory=memory,
                region=AWS_REGIONS.get(self.region, self.region),
                hourly_price_usd=hourly,
                generation=Generation.CURRENT,
            )
            for description, category, vcpu, memory, hourly in _FALLBACK_PRICES
        ]


# Register the AWS provider with the factory
ProviderFactory.register_provider("aws", AWSPricingProvider)
