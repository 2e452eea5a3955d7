"""
FastAPI dependencies — process-wide service wiring.

One Services bundle per process, built lazily on first use and torn down
by the application lifespan.  Routes take individual services through
Depends(); tests swap the whole bundle with

    app.dependency_overrides[get_services] = lambda: fake_services
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends

from backend.app.alerts.lifecycle import AlertLifecycleStore
from backend.app.ingestion.gateway import EnvironmentGateway, LocationNameResolver
from backend.app.ingestion.weather_client import WeatherApiClient
from backend.app.pipeline.assessment import RiskPipeline
from backend.app.pipeline.scheduler import RefreshScheduler

logger = logging.getLogger(__name__)


@dataclass
class Services:
    weather_client: WeatherApiClient
    gateway: EnvironmentGateway
    store: AlertLifecycleStore
    pipeline: RiskPipeline
    scheduler: RefreshScheduler


def build_services(
    gateway: Optional[EnvironmentGateway] = None,
    weather_client: Optional[WeatherApiClient] = None,
    store: Optional[AlertLifecycleStore] = None,
    interval: Optional[float] = None,
) -> Services:
    """Wire the engine together.  Every part can be injected."""
    weather_client = weather_client or WeatherApiClient()
    gateway = gateway or EnvironmentGateway(weather_client=weather_client)
    store = store if store is not None else AlertLifecycleStore()
    pipeline = RiskPipeline(gateway, store, LocationNameResolver(weather_client))
    return Services(
        weather_client=weather_client,
        gateway=gateway,
        store=store,
        pipeline=pipeline,
        scheduler=RefreshScheduler(pipeline, interval=interval),
    )


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
        logger.debug("Services initialised")
    return _services


async def shutdown_services() -> None:
    """Stop the scheduler and close provider connections."""
    global _services
    if _services is None:
        return
    services, _services = _services, None
    await services.scheduler.stop()
    await services.pipeline.close()
    await services.weather_client.close()


def get_store(services: Services = Depends(get_services)) -> AlertLifecycleStore:
    return services.store


def get_pipeline(services: Services = Depends(get_services)) -> RiskPipeline:
    return services.pipeline


def get_scheduler(services: Services = Depends(get_services)) -> RefreshScheduler:
    return services.scheduler


def get_weather_client(services: Services = Depends(get_services)) -> WeatherApiClient:
    return services.weather_client
