"""
Main CLI interface for multi-cloud price aggregation.

Provides commands to run the price service, run a one-off aggregation and
render the prices served by a running instance.
"""

import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Any

import click
import httpx
import requests

from .api.models import PricesResponse
from .config.settings import PricingConfig, get_config
from .providers import ProviderFactory
from .services.aggregator import AggregationReport, PriceAggregator
from .utils.cache import SnapshotCache
from .utils.http_client import HTTPClient

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

PROVIDER_KEYS = ("aws", "azure", "gcp")

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, level: str = "INFO"):
    """Configure logging based on verbosity settings."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    logging.getLogger().setLevel(logging.DEBUG if verbose else getattr(logging, level, logging.INFO))

    # Reduce noise from HTTP libraries
    noisy_loggers = ["httpx", "httpcore", "urllib3", "uvicorn.access"]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.INFO if verbose else logging.WARNING)


def _price_value(record: dict[str, Any]) -> Decimal:
    try:
        return Decimal(record["price"]["hourly"].lstrip("$"))
    except (KeyError, AttributeError, InvalidOperation):
        return Decimal("0")


def select_records(
    data: dict[str, Any],
    provider: str = "all",
    search: str | None = None,
    descending: bool = False,
) -> list[dict[str, Any]]:
    """Flatten a /prices payload, filter by provider and search term, and sort by hourly price."""
    providers = PROVIDER_KEYS if provider == "all" else (provider,)
    records = [record for key in providers for record in data.get(key, [])]

    if search:
        term = search.lower()
        records = [
            record
            for record in records
            if term in record.get("description", "").lower()
            or term in record.get("provider", "").lower()
            or term in record.get("category", "").lower()
        ]

    return sorted(records, key=_price_value, reverse=descending)


def format_table(records: list[dict[str, Any]]) -> str:
    """Render price records as a fixed-width text table."""
    headers = (
        "Provider",
        "Instance",
        "Category",
        "vCPU",
        "Memory",
        "Region",
        "Hourly",
        "Monthly",
        "Yearly",
        "Gen",
    )
    rows = [
        (
            record.get("provider", ""),
            record.get("description", ""),
            record.get("category", ""),
            record.get("vcpu", ""),
            record.get("memory", ""),
            record.get("region", ""),
            record["price"]["hourly"],
            record["price"]["monthly"],
            record["price"]["yearly"],
            record.get("generation", ""),
        )
        for record in records
    ]
    widths = [max(len(str(cell)) for cell in column) for column in zip(headers, *rows)]
    lines = ["  ".join(str(cell).ljust(width) for cell, width in zip(row, widths)) for row in [headers, *rows]]
    lines.insert(1, "  ".join("-" * width for width in widths))
    return "\n".join(lines)


async def run_aggregation(config: PricingConfig) -> AggregationReport:
    """Run a single aggregation cycle against the live provider APIs."""
    cache = SnapshotCache(default_ttl=config.cache_ttl, sweep_interval=config.sweep_interval)
    async with httpx.AsyncClient(timeout=config.http_timeout) as client:
        providers = [
            ProviderFactory.create_provider(name, config.get_provider_config(name), client=client)
            for name in config.enabled_providers
        ]
        aggregator = PriceAggregator(providers, cache, static_fallback=config.static_fallback)
        try:
            return await aggregator.aggregate_with_report()
        finally:
            await cache.close()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging and debug output")
@click.pass_context
def cli(ctx, verbose):
    """Cloud Price Aggregator - compare on-demand compute prices across AWS, Azure, and GCP."""
    ctx.ensure_object(dict)

    try:
        config = get_config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    setup_logging(verbose, config.log_level)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--host", help="Interface to bind (default from configuration)")
@click.option("--port", type=int, help="Port to listen on (default from configuration)")
@click.option("--refresh-interval", type=float, help="Seconds between price refreshes")
@click.pass_context
def serve(ctx, host, port, refresh_interval):
    """Run the price service."""
    from .api.data_service import run

    config: PricingConfig = ctx.obj["config"]
    try:
        config.override_from_cli(
            {"host": host, "port": port, "refresh_interval": refresh_interval}
        )
    except Exception as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(1)

    run(config)


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def fetch(ctx, output_format):
    """Fetch prices from all providers once and print them."""
    config: PricingConfig = ctx.obj["config"]
    report = asyncio.run(run_aggregation(config))
    payload = PricesResponse.from_snapshot(report.snapshot).model_dump(by_alias=True, mode="json")

    if output_format == "json":
        click.echo(json.dumps(payload, indent=2))
        return

    for provider, outcome in report.outcomes.items():
        line = f"{provider.value}: {outcome.record_count} records ({outcome.source.value})"
        if outcome.error:
            line += f" - {outcome.error}"
        click.echo(line)
    click.echo("")
    click.echo(format_table(select_records(payload)))


@cli.command()
@click.option("--url", default="http://localhost:5000", show_default=True, help="Price service URL")
@click.option(
    "--provider",
    type=click.Choice(["aws", "azure", "gcp", "all"]),
    default="all",
    help="Provider to show (default: all)",
)
@click.option("--search", "-s", help="Filter by instance, provider or category")
@click.option("--desc", is_flag=True, help="Sort by price, most expensive first")
@click.option("--limit", "-n", type=int, help="Show at most this many rows")
def show(url, provider, search, desc, limit):
    """Show prices served by a running price service."""
    client = HTTPClient(url)
    try:
        data = client.get_prices()
    except requests.RequestException as e:
        click.echo(f"Error fetching prices from {url}: {e}", err=True)
        sys.exit(1)

    records = select_records(data, provider=provider, search=search, descending=desc)
    if limit is not None:
        records = records[:limit]

    if not records:
        click.echo("No instances found")
        return

    click.echo(format_table(records))
    click.echo(f"\n{len(records)} instances, last updated {data.get('lastUpdated', 'unknown')}")


if __name__ == "__main__":
    cli()
