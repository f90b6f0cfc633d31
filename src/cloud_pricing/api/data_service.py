#!/usr/bin/env python3
"""
Price Data Service - FastAPI Backend
Serves aggregated on-demand compute prices for AWS, Azure and GCP
"""

import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config.settings import PricingConfig, get_config
from ..providers import ProviderFactory
from ..providers.base import PricingProvider
from ..services.aggregator import PriceAggregator
from ..services.query_service import PriceQueryService
from ..services.scheduler import RefreshScheduler
from ..utils.cache import SnapshotCache
from .models import ErrorResponse, HealthCheck, PricesResponse, ServiceStatus

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """Components owned by one running service, created in the lifespan."""

    config: PricingConfig
    cache: SnapshotCache
    aggregator: PriceAggregator
    scheduler: RefreshScheduler
    query_service: PriceQueryService
    http_client: httpx.AsyncClient | None = None


def build_providers(config: PricingConfig, client: httpx.AsyncClient) -> list[PricingProvider]:
    """Create an adapter for every enabled provider, sharing one HTTP client."""
    providers = []
    for name in config.enabled_providers:
        providers.append(
            ProviderFactory.create_provider(name, config.get_provider_config(name), client=client)
        )
    logger.info(f"Configured pricing providers: {', '.join(config.enabled_providers) or 'none'}")
    return providers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info("Starting Price Data Service...")

    config = app.state.pending_config or get_config()
    providers = app.state.pending_providers
    http_client = None
    if providers is None:
        http_client = httpx.AsyncClient(timeout=config.http_timeout)
        try:
            providers = build_providers(config, http_client)
        except Exception:
            await http_client.aclose()
            raise

    cache = SnapshotCache(default_ttl=config.cache_ttl, sweep_interval=config.sweep_interval)
    await cache.start()

    aggregator = PriceAggregator(providers, cache, static_fallback=config.static_fallback)
    scheduler = RefreshScheduler(aggregator, interval=config.refresh_interval)
    app.state.app_state = AppState(
        config=config,
        cache=cache,
        aggregator=aggregator,
        scheduler=scheduler,
        query_service=PriceQueryService(cache, aggregator),
        http_client=http_client,
    )

    # Initial aggregation; a failure here is logged and the service still comes up
    await scheduler.start(run_immediately=True)
    logger.info("✅ Price Data Service started successfully")

    try:
        yield
    finally:
        logger.info("Shutting down Price Data Service...")
        await scheduler.stop()
        await aggregator.close()
        await cache.close()
        if http_client is not None:
            await http_client.aclose()


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def create_app(
    config: PricingConfig | None = None, providers: Iterable[PricingProvider] | None = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Configuration to use instead of the global one
        providers: Adapters to use instead of building them from configuration
    """
    app = FastAPI(
        title="Price Data Service",
        version=__version__,
        description="Aggregated on-demand compute pricing for AWS, Azure and GCP",
        lifespan=lifespan,
    )

    # Stash construction arguments so lifespan can retrieve them
    app.state.pending_config = config
    app.state.pending_providers = list(providers) if providers is not None else None

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthCheck)
    async def health():
        """Liveness check"""
        return HealthCheck(status="ok")

    @app.get(
        "/prices",
        response_model=PricesResponse,
        responses={500: {"model": ErrorResponse}},
    )
    @app.get(
        "/api/prices",
        response_model=PricesResponse,
        responses={500: {"model": ErrorResponse}},
        include_in_schema=False,
    )
    async def get_prices(state: AppState = Depends(get_app_state)):
        """Aggregated prices for all providers"""
        try:
            snapshot = await state.query_service.get_prices()
        except Exception as e:
            logger.error(f"Error serving prices: {e}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(
                    error="Failed to fetch pricing data", message=str(e)
                ).model_dump(),
            )

        return PricesResponse.from_snapshot(snapshot)

    @app.get("/api/status", response_model=ServiceStatus)
    async def get_status(state: AppState = Depends(get_app_state)):
        """Cache, scheduler and last-cycle provider status"""
        report = state.aggregator.last_report
        providers = {}
        if report is not None:
            providers = {
                provider.key: {
                    "source": outcome.source.value,
                    "records": outcome.record_count,
                    "error": outcome.error,
                }
                for provider, outcome in report.outcomes.items()
            }

        return ServiceStatus(
            cache=state.cache.stats(),
            scheduler=state.scheduler.status(),
            providers=providers,
            cache_hits=state.query_service.cache_hits,
            cache_misses=state.query_service.cache_misses,
        )

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "Price Data Service",
            "version": __version__,
            "status": "running",
            "endpoints": {
                "health": "/health",
                "prices": "/prices",
                "status": "/api/status",
                "docs": "/docs",
            },
        }

    return app


app = create_app()


def run(config: PricingConfig | None = None):
    """Serve the module-level app with uvicorn."""
    config = config or get_config()
    app.state.pending_config = config
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    run()
