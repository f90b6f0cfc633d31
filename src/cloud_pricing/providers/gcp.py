"""
GCP Compute Engine pricing provider implementation.

Reads VM image prices for one region from the public Cloud Pricing
Calculator price list.
"""

import logging
from decimal import Decimal, InvalidOperation
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

PRICE_LIST_URL = "https://cloudpricingcalculator.googleapis.com/static/data/pricelist.json"
VM_IMAGE_PREFIX = "CP-COMPUTEENGINE-VMIMAGE-"

# GB of memory per vCPU, by category
_MEMORY_PER_VCPU = {
    InstanceCategory.MEMORY_OPTIMIZED: 8,
    InstanceCategory.COMPUTE_OPTIMIZED: 2,
}

_FALLBACK_PRICES = [
    ("e2-standard-2", InstanceCategory.GENERAL_PURPOSE, "2", "8 GB", "0.0671"),
    ("e2-standard-4", InstanceCategory.GENERAL_PURPOSE, "4", "16 GB", "0.1342"),
    ("c2-standard-4", InstanceCategory.COMPUTE_OPTIMIZED, "4", "16 GB", "0.2088"),
    ("c2-standard-8", InstanceCategory.COMPUTE_OPTIMIZED, "8", "32 GB", "0.4176"),
    ("n2-highmem-2", InstanceCategory.MEMORY_OPTIMIZED, "2", "16 GB", "0.1074"),
    ("n2-highmem-4", InstanceCategory.MEMORY_OPTIMIZED, "4", "32 GB", "0.2148"),
]


def classify_machine_type(name: str) -> InstanceCategory:
    if "highcpu" in name:
        return InstanceCategory.COMPUTE_OPTIMIZED
    if "highmem" in name:
        return InstanceCategory.MEMORY_OPTIMIZED
    return InstanceCategory.GENERAL_PURPOSE


def estimate_specs(name: str, category: InstanceCategory) -> tuple[str, str]:
    """Derive vCPUs from the trailing size in the machine type and estimate memory."""
    parts = name.split("-")
    if len(parts) < 2 or not parts[-1].isdigit():
        return "N/A", "N/A"

    vcpus = int(parts[-1])
    memory_gb = vcpus * _MEMORY_PER_VCPU.get(category, 4)
    return str(vcpus), f"{memory_gb} GB"


def parse_price_list(payload: dict[str, Any], region: str) -> list[PriceRecord]:
    """
    Convert the calculator price list into price records.

    Args:
        payload: Decoded ``pricelist.json`` document
        region: Region key to read prices for (e.g. ``us-central1``)

    Returns:
        VM image entries that carry a price for the region

    Raises:
        ParseError: If the document has no ``gcp_price_list`` section
    """
    price_list = payload.get("gcp_price_list") if isinstance(payload, dict) else None
    if not isinstance(price_list, dict):
        raise ParseError("Invalid GCP price list format", provider="gcp")

    records = []
    for key, value in price_list.items():
        if not key.startswith(VM_IMAGE_PREFIX) or not isinstance(value, dict):
            continue

        hourly = value.get(region)
        if hourly is None:
            continue

        name = key[len(VM_IMAGE_PREFIX):].lower()
        category = classify_machine_type(name)
        vcpu, memory = estimate_specs(name, category)

        try:
            records.append(
                PriceRecord(
                    provider=ProviderName.GCP,
                    description=name,
                    category=category,
                    vcpu=vcpu,
                    memory=memory,
                    region=region,
                    hourly_price_usd=Decimal(str(hourly)),
                    generation=(
                        Generation.CURRENT
                        if name.startswith(("n2", "c2"))
                        else Generation.PREVIOUS
                    ),
                )
            )
        except (InvalidOperation, ValidationError) as e:
            logger.debug(f"Skipping GCP machine type {name}: {e}")

    return records


class GCPPricingProvider(PricingProvider):
    """GCP Cloud Pricing Calculator provider implementation."""

    default_region = "us-central1"

    def _get_provider_name(self) -> ProviderName:
        return ProviderName.GCP

    async def fetch(self) -> list[PriceRecord]:
        logger.info(f"Starting GCP price fetch for {self.region}")

        async with self.http_client() as client:
            payload = await self._get_json(
                client, PRICE_LIST_URL, headers={"Accept": "application/json"}
            )

        records = parse_price_list(payload, self.region)
        if not records:
            raise ParseError(f"No GCP instances priced in {self.region}", provider="gcp")

        logger.info(f"Successfully fetched {len(records)} GCP instances")
        return records

    def fallback_records(self) -> list[PriceRecord]:
        return [
            PriceRecord(
                provider=ProviderName.GCP,
                description=description,
                category=category,
                vcpu=vcpu,
                memory=memory,
                region=self.region,
                hourly_price_usd=hourly,
                generation=Generation.CURRENT,
            )
            for description, category, vcpu, memory, hourly in _FALLBACK_PRICES
        ]


# Register the GCP provider with the factory
ProviderFactory.register_provider("gcp", GCPPricingProvider)
