"""
assessment.py — Fetch → score → alert → merge → snapshot.

═══════════════════════════════════════════════════════════════════════════
PIPELINE
═══════════════════════════════════════════════════════════════════════════

    collect(coordinates)                         async, the only awaits
        ├── gateway.fetch()       reading, live or fallback
        └── resolver.resolve()    place label
                │
                ▼
    assess(coordinates, reading, location_name)  sync, never awaits
        1. calculate_risk_scores()
        2. generate_alerts()
        3. store.merge(alerts, coordinates)
        4. build LocationSnapshot (actionable alerts for this bucket)
        5. publish to subscribers (monitored refreshes only)

Splitting the async half from the sync half lets the scheduler check the
selection generation between them: a result that went stale while the
network calls were in flight is dropped before it can touch the store.

Subscribers follow the monitored selection.  RefreshScheduler is the only
caller that publishes; get_snapshot() for an arbitrary coordinate still
merges its alerts but is never delivered to subscribers.

Provider outages never surface here.  EnvironmentGateway.fetch() returns
a degraded reading instead, and the snapshot carries its degraded_sources.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from backend.app.alerts.generator import generate_alerts
from backend.app.alerts.lifecycle import AlertLifecycleStore
from backend.app.core.config import settings
from backend.app.ingestion.gateway import (
    EnvironmentGateway,
    EnvironmentReading,
    LocationNameResolver,
)
from backend.app.risk.models import Coordinates, LocationSnapshot
from backend.app.risk.scoring import calculate_risk_scores

logger = logging.getLogger(__name__)

Subscriber = Callable[[LocationSnapshot], None]


class RiskPipeline:
    """
    Orchestrates one assessment of one coordinate.

    Parameters
    ----------
    gateway : EnvironmentGateway
    store : AlertLifecycleStore
    resolver : LocationNameResolver
    bucket_precision : int | None
        Precision used to pick the alerts that belong to a snapshot.
    """

    def __init__(
        self,
        gateway: EnvironmentGateway,
        store: AlertLifecycleStore,
        resolver: LocationNameResolver,
        bucket_precision: Optional[int] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.resolver = resolver
        self._precision = (
            settings.ALERT_BUCKET_PRECISION if bucket_precision is None else bucket_precision
        )
        self._subscribers: List[Subscriber] = []
        self.last_outcome: Dict[str, Any] = {"status": "unknown"}

    # ── Async half ────────────────────────────────────────────────────

    async def collect(self, coordinates: Coordinates) -> Tuple[EnvironmentReading, str]:
        """Environment reading and place label, fetched concurrently."""
        reading, name = await asyncio.gather(
            self.gateway.fetch(coordinates),
            self.resolver.resolve(coordinates),
        )
        return reading, name

    # ── Sync half ─────────────────────────────────────────────────────

    def assess(
        self,
        coordinates: Coordinates,
        reading: EnvironmentReading,
        location_name: Optional[str] = None,
        now: Optional[datetime] = None,
        publish: bool = True,
    ) -> LocationSnapshot:
        """
        Score a reading and fold its alerts into the store.

        With publish=False the snapshot is returned to the caller only;
        subscribers never see it.
        """
        started = time.perf_counter()
        now = now or datetime.now(timezone.utc)

        risk_score = calculate_risk_scores(
            reading.weather, reading.elevation, coordinates, at=now,
        )
        fresh = generate_alerts(risk_score, coordinates, now=now)
        self.store.merge(fresh, coordinates)

        bucket = coordinates.bucket(self._precision)
        alerts = [
            a for a in self.store.active_alerts()
            if a.coordinates.bucket(self._precision) == bucket
        ]

        snapshot = LocationSnapshot(
            coordinates=coordinates,
            location_name=location_name or coordinates.short_label(),
            weather=reading.weather,
            elevation=reading.elevation,
            seismic=list(reading.seismic),
            risk_score=risk_score,
            alerts=alerts,
            last_updated=now,
            degraded_sources=list(reading.degraded_sources),
        )

        self.last_outcome = {
            "status": "degraded" if snapshot.degraded else "healthy",
            "degraded_sources": list(snapshot.degraded_sources),
            "at": now.isoformat(),
        }

        logger.info(
            "Assessed (%.4f, %.4f): overall=%d, %d active alert(s)%s",
            coordinates.lat, coordinates.lng, risk_score.overall, len(alerts),
            " [degraded]" if snapshot.degraded else "",
            extra={
                "lat": coordinates.lat,
                "lng": coordinates.lng,
                "overall": risk_score.overall,
                "degraded": snapshot.degraded,
                "duration_ms": (time.perf_counter() - started) * 1000,
            },
        )

        if publish:
            self._publish(snapshot)
        return snapshot

    async def get_snapshot(self, coordinates: Coordinates) -> LocationSnapshot:
        """One-shot fetch and assess, outside any scheduling.  Not published."""
        reading, name = await self.collect(coordinates)
        return self.assess(coordinates, reading, location_name=name, publish=False)

    # ── Subscriptions ─────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Deliver every future snapshot to `callback`.

        Returns a function that removes the subscription; calling it twice
        is harmless.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, snapshot: LocationSnapshot) -> None:
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber %r failed", callback)

    async def close(self) -> None:
        await self.gateway.close()
