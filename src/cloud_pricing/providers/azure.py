"""
Azure Virtual Machines pricing provider implementation.

Reads pay-as-you-go Linux VM prices from the public Azure Retail Prices API.
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

RETAIL_PRICES_URL = "https://prices.azure.com/api/retail/prices"

AZURE_REGIONS = {
    "eastus": "East US",
    "eastus2": "East US 2",
    "westus2": "West US 2",
    "westeurope": "West Europe",
    "northeurope": "North Europe",
    "southeastasia": "Southeast Asia",
}

# Known sizes; anything else reports N/A
VM_SPECS = {
    "B1s": ("1", "1 GB"),
    "B2s": ("2", "4 GB"),
    "B4ms": ("4", "16 GB"),
    "D2s_v3": ("2", "8 GB"),
    "D4s_v3": ("4", "16 GB"),
    "D8s_v3": ("8", "32 GB"),
    "E2s_v3": ("2", "16 GB"),
    "E4s_v3": ("4", "32 GB"),
    "E8s_v3": ("8", "64 GB"),
    "F2s_v2": ("2", "4 GB"),
    "F4s_v2": ("4", "8 GB"),
    "F8s_v2": ("8", "16 GB"),
}

_FALLBACK_PRICES = [
    ("B2s", InstanceCategory.GENERAL_PURPOSE, "2", "4 GB", "0.0416"),
    ("D2s v3", InstanceCategory.GENERAL_PURPOSE, "2", "8 GB", "0.096"),
    ("F4s v2", InstanceCategory.COMPUTE_OPTIMIZED, "4", "8 GB", "0.169"),
]

_CATEGORY_BY_PREFIX = {
    "b": InstanceCategory.GENERAL_PURPOSE,
    "d": InstanceCategory.GENERAL_PURPOSE,
    "e": InstanceCategory.MEMORY_OPTIMIZED,
    "f": InstanceCategory.COMPUTE_OPTIMIZED,
    "g": InstanceCategory.GPU_OPTIMIZED,
    "h": InstanceCategory.HIGH_PERFORMANCE,
    "l": InstanceCategory.STORAGE_OPTIMIZED,
    "m": InstanceCategory.MEMORY_OPTIMIZED,
}


def vm_specs(sku_name: str) -> tuple[str, str]:
    """Look up vCPU count and memory for a SKU name."""
    normalized = sku_name.replace("_", "").replace(" ", "").lower()
    for size, specs in VM_SPECS.items():
        if size.replace("_", "").lower() in normalized:
            return specs
    return "N/A", "N/A"


def classify_instance(arm_sku_name: str) -> InstanceCategory:
    """Map an ARM SKU name (e.g. ``Standard_E4s_v3``) to a category by its series letter."""
    series = arm_sku_name.lower()
    if series.startswith(("standard_", "basic_")):
        series = series.split("_", 1)[1]
    return _CATEGORY_BY_PREFIX.get(series[:1], InstanceCategory.GENERAL_PURPOSE)


def _is_linux_consumption(item: dict[str, Any]) -> bool:
    sku_name = item.get("skuName") or ""
    return (
        item.get("type") == "Consumption"
        and bool(sku_name)
        and "Low Priority" not in sku_name
        and "Spot" not in sku_name
        and "Windows" not in (item.get("productName") or "")
    )


def parse_retail_items(items: list[dict[str, Any]], region: str) -> list[PriceRecord]:
    """
    Convert Retail Prices API items into price records.

    Args:
        items: ``Items`` entries from one or more result pages
        region: ARM region name the items were filtered on

    Returns:
        One record per ARM SKU, first occurrence wins
    """
    region_name = AZURE_REGIONS.get(region, region)
    seen: dict[str, PriceRecord] = {}

    for item in items:
        if not _is_linux_consumption(item):
            continue

        arm_sku_name = item.get("armSkuName")
        if not arm_sku_name or arm_sku_name in seen:
            continue

        sku_name = item["skuName"]
        vcpu, memory = vm_specs(sku_name)
        try:
            seen[arm_sku_name] = PriceRecord(
                provider=ProviderName.AZURE,
                description=arm_sku_name,
                category=classify_instance(arm_sku_name),
                vcpu=vcpu,
                memory=memory,
                region=region_name,
                hourly_price_usd=item.get("retailPrice"),
                generation=Generation.PREVIOUS if "v2" in sku_name else Generation.CURRENT,
            )
        except ValidationError as e:
            logger.debug(f"Skipping Azure SKU {arm_sku_name}: {e}")

    return list(seen.values())


class AzurePricingProvider(PricingProvider):
    """Azure Retail Prices API provider implementation."""

    default_region = "eastus"

    def __init__(self, config=None, client=None):
        super().__init__(config, client=client)
        self.max_pages = int(self.config.get("max_pages", 5))

    def _get_provider_name(self) -> ProviderName:
        return ProviderName.AZURE

    def _filter(self) -> str:
        return (
            "serviceName eq 'Virtual Machines' and priceType eq 'Consumption' "
            f"and armRegionName eq '{self.region}'"
        )

    async def fetch(self) -> list[PriceRecord]:
        logger.info(f"Starting Azure price fetch for {self.region}")

        items: list[dict[str, Any]] = []
        async with self.http_client() as client:
            page = await self._get_json(client, RETAIL_PRICES_URL, params={"$filter": self._filter()})
            pages = 1
            while True:
                if not isinstance(page, dict) or not isinstance(page.get("Items"), list):
                    raise ParseError("Azure response has no Items list", provider="azure")
                items.extend(page["Items"])

                next_link = page.get("NextPageLink")
                if not next_link or pages >= self.max_pages:
                    break
                page = await self._get_json(client, next_link)
                pages += 1

        records = parse_retail_items(items, self.region)
        if not records:
            raise ParseError(f"Azure returned no VM prices for {self.region}", provider="azure")

        logger.info(
            f"Azure price fetch completed successfully: {len(records)} instances from {pages} pages"
        )
        return records

    def fallback_records(self) -> list[PriceRecord]:
        return [
            PriceRecord(
                provider=ProviderName.AZURE,
                description=description,
                category=category,
                vcpu=vcpu,
                memory=memory,
                region=AZURE_REGIONS.get(self.region, self.region),
                hourly_price_usd=hourly,
                generation=Generation.CURRENT,
            )
            for description, category, vcpu, memory, hourly in _FALLBACK_PRICES
        ]


# Register the Azure provider with the factory
ProviderFactory.register_provider("azure", AzurePricingProvider)
