"""
USGS FDSN event client — recent earthquakes near a coordinate.

═══════════════════════════════════════════════════════════════════════════
USGS EARTHQUAKE CATALOG
═══════════════════════════════════════════════════════════════════════════

Endpoint: https://earthquake.usgs.gov/fdsnws/event/1/query  (no API key)

Query:
    format=geojson
    latitude / longitude / maxradiuskm   circular search area
    starttime                            now - SEISMIC_LOOKBACK_HOURS (UTC)
    minmagnitude                         SEISMIC_MIN_MAGNITUDE
    orderby=time, limit                  newest first, capped

Each GeoJSON feature maps to a SeismicEvent:

    properties.mag          → magnitude
    properties.place        → location
    properties.time (ms)    → time (UTC)
    geometry.coordinates    → [lng, lat, depth_km]

Events are display-only: the earthquake score does not read them.
Malformed features are skipped rather than failing the whole list.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.errors import GatewayUnavailableError, InvalidInputError
from backend.app.ingestion.base import ProviderClient
from backend.app.risk.models import Coordinates, SeismicEvent

logger = logging.getLogger(__name__)


def parse_events(data: Dict[str, Any]) -> List[SeismicEvent]:
    """Map a USGS GeoJSON FeatureCollection to SeismicEvents, newest first."""
    events: List[SeismicEvent] = []
    for i, feature in enumerate(data.get("features") or []):
        try:
            props = feature["properties"]
            lng, lat, depth = feature["geometry"]["coordinates"][:3]
            if props.get("mag") is None:
                continue
            events.append(SeismicEvent(
                magnitude=float(props["mag"]),
                depth=float(depth or 0.0),
                location=props.get("place") or "Unknown location",
                coordinates=Coordinates(lat=lat, lng=lng),
                time=datetime.fromtimestamp(props["time"] / 1000, tz=timezone.utc),
            ))
        except (KeyError, TypeError, ValueError, InvalidInputError) as e:
            logger.warning("Skipping malformed seismic feature %d: %s", i, e)

    events.sort(key=lambda e: e.time, reverse=True)
    return events


class SeismicClient(ProviderClient):
    """Async USGS earthquake search."""

    provider = "usgs"

    def __init__(
        self,
        url: Optional[str] = None,
        radius_km: Optional[float] = None,
        lookback_hours: Optional[int] = None,
        min_magnitude: Optional[float] = None,
        max_events: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.url = url or settings.USGS_EARTHQUAKE_URL
        self.radius_km = radius_km or settings.SEISMIC_RADIUS_KM
        self.lookback_hours = lookback_hours or settings.SEISMIC_LOOKBACK_HOURS
        self.min_magnitude = (
            min_magnitude if min_magnitude is not None else settings.SEISMIC_MIN_MAGNITUDE
        )
        self.max_events = max_events or settings.SEISMIC_MAX_EVENTS

    async def get_recent_events(
        self,
        lat: float,
        lng: float,
        now: Optional[datetime] = None,
    ) -> List[SeismicEvent]:
        start = (now or datetime.now(timezone.utc)) - timedelta(hours=self.lookback_hours)
        params = {
            "format": "geojson",
            "latitude": lat,
            "longitude": lng,
            "maxradiuskm": self.radius_km,
            "starttime": start.strftime("%Y-%m-%dT%H:%M:%S"),
            "minmagnitude": self.min_magnitude,
            "orderby": "time",
            "limit": self.max_events,
        }
        data = await self._get_json(self.url, params)
        if not isinstance(data, dict):
            raise GatewayUnavailableError(self.provider, "unexpected payload")

        events = parse_events(data)
        logger.debug(
            "%d seismic event(s) within %.0f km of (%.4f, %.4f)",
            len(events), self.radius_km, lat, lng,
        )
        return events
