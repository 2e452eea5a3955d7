"""
Health check aggregation — deep health probe for the risk engine.

Checks:
    • Refresh scheduler (selection, last error)
    • Alert store (counts)
    • Environment providers (outcome of the last assessment)
    • Provider configuration (API key present)

An assessment built from fallback data degrades the report but never makes
it unhealthy: the engine keeps serving snapshots while providers are down.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


def check_scheduler(scheduler) -> ComponentHealth:
    comp = ComponentHealth(name="refresh_scheduler")
    status = scheduler.status()
    comp.details = {
        k: status[k] for k in ("state", "coordinates", "timer_armed", "refresh_count")
    }
    if status["last_error"]:
        comp.status = HealthStatus.DEGRADED
        comp.message = f"Last refresh failed: {status['last_error']}"
    elif status["coordinates"] is None:
        comp.message = "No location selected"
    else:
        comp.message = f"Refreshing every {scheduler.interval:g}s"
    return comp


def check_alert_store(store) -> ComponentHealth:
    comp = ComponentHealth(name="alert_store")
    summary = store.summary()
    comp.details = {k: summary[k] for k in ("total", "active", "critical")}
    comp.message = f"{summary['active']} active alert(s)"
    return comp


def check_providers(pipeline) -> ComponentHealth:
    comp = ComponentHealth(name="environment_providers")
    outcome = pipeline.last_outcome
    comp.details = dict(outcome)
    if outcome.get("status") == "degraded":
        comp.status = HealthStatus.DEGRADED
        comp.message = "Fallback data in use: " + ", ".join(outcome.get("degraded_sources", []))
    elif outcome.get("status") == "healthy":
        comp.message = "Last assessment used live data"
    else:
        comp.message = "No assessment yet"
    return comp


def check_configuration() -> ComponentHealth:
    comp = ComponentHealth(name="configuration")
    comp.details = {
        "weather_api": settings.WEATHER_API_BASE_URL,
        "elevation_api": settings.OPEN_METEO_ELEVATION_URL,
        "seismic_api": settings.USGS_EARTHQUAKE_URL,
    }
    if not settings.WEATHER_API_KEY:
        comp.status = HealthStatus.DEGRADED
        comp.message = "WEATHER_API_KEY not set; weather will use fallback data"
    else:
        comp.message = "Providers configured"
    return comp


async def run_health_check(services) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    checks = [
        lambda: check_scheduler(services.scheduler),
        lambda: check_alert_store(services.store),
        lambda: check_providers(services.pipeline),
        check_configuration,
    ]

    for check in checks:
        start = time.monotonic()
        comp = check()
        comp.latency_ms = (time.monotonic() - start) * 1000
        report.components.append(comp)

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
