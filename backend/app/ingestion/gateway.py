"""
EnvironmentGateway — one call that gathers everything a score needs.

═══════════════════════════════════════════════════════════════════════════
FAN-OUT
═══════════════════════════════════════════════════════════════════════════

    fetch_live(coordinates)
        ├── WeatherApiClient.get_current_weather   required
        ├── ElevationClient.get_elevation          optional → approximate_elevation()
        └── SeismicClient.get_recent_events        optional → []

The three requests run concurrently.  Elevation and seismic failures are
absorbed and named in EnvironmentReading.degraded_sources.  A weather
failure fails fetch_live() with GatewayUnavailableError.

═══════════════════════════════════════════════════════════════════════════
WEATHER FALLBACK
═══════════════════════════════════════════════════════════════════════════

fetch() wraps fetch_live() and never raises GatewayUnavailableError:

    fetch_live() result              Reading returned             degraded
    ──────────────────────────────   ──────────────────────────   ────────
    ok                               live                         per source
    failed, bucket seen before       last good for this bucket    yes
    failed, nothing cached           fallback_weather() + approx  yes

The last-known-good cache is keyed by coordinate bucket and holds only
readings whose weather was live.

LocationNameResolver turns coordinates into a place label for display.
It never raises: on failure it returns "lat, lng" and retries next time.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.errors import GatewayUnavailableError
from backend.app.ingestion.elevation_client import ElevationClient, approximate_elevation
from backend.app.ingestion.seismic_client import SeismicClient
from backend.app.ingestion.weather_client import WeatherApiClient, fallback_weather
from backend.app.risk.models import (
    Coordinates,
    ElevationSample,
    SeismicEvent,
    WeatherObservation,
)

logger = logging.getLogger(__name__)

Bucket = Tuple[float, float]

ALL_SOURCES = ["weather", "elevation", "seismic"]


@dataclass
class EnvironmentReading:
    """Raw inputs for one coordinate, before scoring."""
    weather: WeatherObservation
    elevation: ElevationSample
    seismic: List[SeismicEvent] = field(default_factory=list)
    degraded_sources: List[str] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_sources)


class EnvironmentGateway:
    """
    Concurrent fetch of weather, elevation and seismic data.

    Parameters
    ----------
    weather_client, elevation_client, seismic_client
        Provider clients; defaults are built from settings.
    precision : int | None
        Decimal places of the last-known-good cache key.  Defaults to
        settings.ALERT_BUCKET_PRECISION.
    """

    def __init__(
        self,
        weather_client: Optional[WeatherApiClient] = None,
        elevation_client: Optional[ElevationClient] = None,
        seismic_client: Optional[SeismicClient] = None,
        precision: Optional[int] = None,
    ):
        self.weather_client = weather_client or WeatherApiClient()
        self.elevation_client = elevation_client or ElevationClient()
        self.seismic_client = seismic_client or SeismicClient()
        self.precision = settings.ALERT_BUCKET_PRECISION if precision is None else precision
        self._last_good: Dict[Bucket, EnvironmentReading] = {}

    async def fetch(self, coordinates: Coordinates) -> EnvironmentReading:
        """Live reading, or a degraded fallback reading.  Never raises GatewayUnavailableError."""
        key = coordinates.bucket(self.precision)
        try:
            reading = await self.fetch_live(coordinates)
        except GatewayUnavailableError as e:
            return self._fallback_reading(coordinates, key, e)

        self._last_good[key] = reading
        return reading

    async def fetch_live(self, coordinates: Coordinates) -> EnvironmentReading:
        """
        Gather a reading for `coordinates` from the providers.

        Raises
        ------
        GatewayUnavailableError
            When current weather cannot be obtained.
        """
        weather, elevation, seismic = await asyncio.gather(
            self.weather_client.get_current_weather(coordinates.lat, coordinates.lng),
            self.elevation_client.get_elevation(coordinates.lat, coordinates.lng),
            self.seismic_client.get_recent_events(coordinates.lat, coordinates.lng),
            return_exceptions=True,
        )

        for result in (weather, elevation, seismic):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        if isinstance(weather, Exception):
            if isinstance(weather, GatewayUnavailableError):
                raise weather
            raise GatewayUnavailableError(WeatherApiClient.provider, str(weather)) from weather

        degraded: List[str] = []

        if isinstance(elevation, BaseException):
            self._log_degraded("elevation", elevation, coordinates)
            elevation = approximate_elevation(coordinates)
            degraded.append("elevation")

        if isinstance(seismic, BaseException):
            self._log_degraded("seismic", seismic, coordinates)
            seismic = []
            degraded.append("seismic")

        return EnvironmentReading(
            weather=weather,
            elevation=elevation,
            seismic=seismic,
            degraded_sources=degraded,
        )

    def _fallback_reading(
        self,
        coordinates: Coordinates,
        key: Bucket,
        error: GatewayUnavailableError,
    ) -> EnvironmentReading:
        cached = self._last_good.get(key)
        if cached is not None:
            logger.warning(
                "Weather unavailable (%s), reusing reading from %s",
                error.message, cached.fetched_at.isoformat(),
                extra={"lat": coordinates.lat, "lng": coordinates.lng, "degraded": True},
            )
            return EnvironmentReading(
                weather=cached.weather,
                elevation=cached.elevation,
                seismic=list(cached.seismic),
                degraded_sources=["weather"] + cached.degraded_sources,
                fetched_at=cached.fetched_at,
            )

        logger.warning(
            "Weather unavailable (%s), no cached reading; using reference conditions",
            error.message,
            extra={"lat": coordinates.lat, "lng": coordinates.lng, "degraded": True},
        )
        return EnvironmentReading(
            weather=fallback_weather(),
            elevation=approximate_elevation(coordinates),
            seismic=[],
            degraded_sources=list(ALL_SOURCES),
        )

    @staticmethod
    def _log_degraded(source: str, error: BaseException, coordinates: Coordinates) -> None:
        if not isinstance(error, (GatewayUnavailableError, asyncio.TimeoutError)):
            # Anything else is a bug in a client, not a provider outage.
            logger.error(
                "Unexpected %s failure", source,
                exc_info=(type(error), error, error.__traceback__),
            )
        logger.warning(
            "%s unavailable at (%.4f, %.4f), using fallback: %s",
            source, coordinates.lat, coordinates.lng, error,
            extra={"lat": coordinates.lat, "lng": coordinates.lng, "degraded": True},
        )

    def clear_cache(self) -> None:
        self._last_good.clear()

    async def close(self) -> None:
        await asyncio.gather(
            self.weather_client.close(),
            self.elevation_client.close(),
            self.seismic_client.close(),
        )


class LocationNameResolver:
    """
    Best-effort reverse lookup of a place label, cached by coordinate bucket.

    Examples
    --------
    >>> resolver = LocationNameResolver(WeatherApiClient())
    >>> await resolver.resolve(Coordinates(28.6139, 77.2090))
    'New Delhi, Delhi, India'
    """

    def __init__(
        self,
        weather_client: Optional[WeatherApiClient] = None,
        precision: Optional[int] = None,
    ):
        self.weather_client = weather_client or WeatherApiClient()
        self.precision = settings.ALERT_BUCKET_PRECISION if precision is None else precision
        self._cache: Dict[Bucket, str] = {}

    async def resolve(self, coordinates: Coordinates) -> str:
        key = coordinates.bucket(self.precision)
        cached = self._cache.get(key)
        if cached:
            return cached

        try:
            name = await self.weather_client.get_location_name(coordinates.lat, coordinates.lng)
        except GatewayUnavailableError as e:
            logger.debug("Location name lookup failed: %s", e.message)
            return coordinates.short_label()

        if not name:
            return coordinates.short_label()

        self._cache[key] = name
        return name

    def clear(self) -> None:
        self._cache.clear()
