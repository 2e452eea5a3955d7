"""
WeatherAPI.com client — current conditions, 3-day outlook, place names.

═══════════════════════════════════════════════════════════════════════════
WEATHERAPI.COM
═══════════════════════════════════════════════════════════════════════════

Base URL: https://api.weatherapi.com/v1   (API key required)

    Endpoint        Used for
    ─────────────   ─────────────────────────────────────────────
    current.json    WeatherObservation + location name
    forecast.json   DailyForecast list (days=1..3 on the free tier)

Field mapping (current.json → WeatherObservation):

    temp_c        → temperature      (rounded)
    humidity      → humidity
    wind_kph      → wind_speed       (rounded)
    pressure_mb   → pressure         (rounded)
    vis_km        → visibility       (rounded)
    cloud         → cloud_cover
    precip_mm     → precipitation    (one decimal)
    feelslike_c   → feels_like       (rounded)
    uv            → uv_index
    condition     → condition / icon
    (derived)     → rain_chance      see calculate_rain_chance()

═══════════════════════════════════════════════════════════════════════════
FAILURE BEHAVIOUR
═══════════════════════════════════════════════════════════════════════════

get_current_weather() and get_location_name() raise GatewayUnavailableError;
the gateway and the name resolver decide what to fall back to.

get_forecast() is display-only and never raises: on failure it returns the
synthetic outlook from fallback_forecast().
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.errors import GatewayUnavailableError, InvalidInputError
from backend.app.ingestion.base import ProviderClient
from backend.app.risk.models import DailyForecast, WeatherObservation
from backend.app.risk.scoring import round_half_up

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Constants
# ═══════════════════════════════════════════════════════════════════════════

MAX_FORECAST_DAYS = 3

_ICON_BASE = "//cdn.weatherapi.com/weather/64x64/day"


# ═══════════════════════════════════════════════════════════════════════════
# Derived fields
# ═══════════════════════════════════════════════════════════════════════════

def calculate_rain_chance(humidity: float, cloud_cover: float, precipitation: float) -> int:
    """
    Estimate chance of rain (%) from current conditions.

    Already raining → 90.  Otherwise stepped on humidity AND cloud cover:

        humidity > 80, cloud > 70   → 75
        humidity > 70, cloud > 60   → 60
        humidity > 60, cloud > 50   → 45
        humidity > 50, cloud > 40   → 30
        else                        → (humidity + cloud) / 4

    Examples
    --------
    >>> calculate_rain_chance(65, 40, 0.0)
    26
    >>> calculate_rain_chance(40, 10, 0.5)
    90
    """
    if precipitation > 0:
        return 90
    if humidity > 80 and cloud_cover > 70:
        return 75
    if humidity > 70 and cloud_cover > 60:
        return 60
    if humidity > 60 and cloud_cover > 50:
        return 45
    if humidity > 50 and cloud_cover > 40:
        return 30
    return max(0, round_half_up((humidity + cloud_cover) / 4))


def _one_decimal(value: float) -> float:
    return round_half_up(value * 10) / 10


# ═══════════════════════════════════════════════════════════════════════════
# Fallbacks
# ═══════════════════════════════════════════════════════════════════════════

def fallback_weather() -> WeatherObservation:
    """Synthetic reference observation used when no real reading exists."""
    return WeatherObservation(
        temperature=28,
        humidity=65,
        wind_speed=12,
        pressure=1013,
        visibility=10,
        cloud_cover=40,
        precipitation=0.2,
        rain_chance=25,
        condition="Partly Cloudy",
        icon=f"{_ICON_BASE}/116.png",
        feels_like=32,
        uv_index=6,
    )


def fallback_forecast(today: Optional[date] = None, days: int = MAX_FORECAST_DAYS) -> List[DailyForecast]:
    """Synthetic 3-day outlook: sunny, partly cloudy, light rain."""
    start = today or date.today()
    outlook = [
        ("Sunny", "113", 30, 22, 10, 0.0),
        ("Partly Cloudy", "116", 28, 20, 20, 0.1),
        ("Light Rain", "296", 26, 18, 80, 2.5),
    ]
    return [
        DailyForecast(
            date=start + timedelta(days=offset),
            max_temp=max_temp,
            min_temp=min_temp,
            condition=condition,
            icon=f"{_ICON_BASE}/{icon}.png",
            chance_of_rain=rain,
            precipitation=precip,
        )
        for offset, (condition, icon, max_temp, min_temp, rain, precip)
        in enumerate(outlook[:days])
    ]


# ═══════════════════════════════════════════════════════════════════════════
# Response parsing
# ═══════════════════════════════════════════════════════════════════════════

def parse_current(data: Dict[str, Any]) -> WeatherObservation:
    """Map a current.json payload to a validated WeatherObservation."""
    current = data["current"]
    condition = current.get("condition") or {}
    humidity = float(current["humidity"])
    cloud = float(current.get("cloud", 0))
    precip = float(current.get("precip_mm", 0))

    observation = WeatherObservation(
        temperature=round_half_up(current["temp_c"]),
        humidity=humidity,
        wind_speed=round_half_up(current["wind_kph"]),
        pressure=round_half_up(current["pressure_mb"]),
        visibility=round_half_up(current["vis_km"]),
        cloud_cover=cloud,
        precipitation=_one_decimal(precip),
        rain_chance=calculate_rain_chance(humidity, cloud, precip),
        condition=condition.get("text", ""),
        icon=condition.get("icon"),
        feels_like=(
            round_half_up(current["feelslike_c"])
            if current.get("feelslike_c") is not None else None
        ),
        uv_index=current.get("uv"),
    )
    return observation.validate()


def parse_forecast(data: Dict[str, Any]) -> List[DailyForecast]:
    """Map a forecast.json payload; empty list if it has no forecast block."""
    days = (data.get("forecast") or {}).get("forecastday") or []
    forecasts: List[DailyForecast] = []
    for entry in days:
        day = entry["day"]
        condition = day.get("condition") or {}
        forecasts.append(DailyForecast(
            date=date.fromisoformat(entry["date"]),
            max_temp=round_half_up(day["maxtemp_c"]),
            min_temp=round_half_up(day["mintemp_c"]),
            condition=condition.get("text", ""),
            icon=condition.get("icon", ""),
            chance_of_rain=day.get("daily_chance_of_rain") or 0,
            precipitation=_one_decimal(float(day.get("totalprecip_mm") or 0)),
        ))
    return forecasts


def format_location_name(data: Dict[str, Any]) -> str:
    location = data["location"]
    parts = [location.get("name"), location.get("region"), location.get("country")]
    return ", ".join(p for p in parts if p)


# ═══════════════════════════════════════════════════════════════════════════
# Client
# ═══════════════════════════════════════════════════════════════════════════

class WeatherApiClient(ProviderClient):
    """
    Async WeatherAPI.com client.

    Usage:
        client = WeatherApiClient(api_key="...")
        observation = await client.get_current_weather(28.6139, 77.2090)
        outlook = await client.get_forecast(28.6139, 77.2090)
        await client.close()
    """

    provider = "weatherapi"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key if api_key is not None else settings.WEATHER_API_KEY
        self.base_url = (base_url or settings.WEATHER_API_BASE_URL).rstrip("/")

    async def _request(self, endpoint: str, lat: float, lng: float, **params: Any) -> Dict[str, Any]:
        if not self.api_key:
            raise GatewayUnavailableError(self.provider, "WEATHER_API_KEY is not configured")
        query = {"key": self.api_key, "q": f"{lat},{lng}", **params}
        return await self._get_json(f"{self.base_url}/{endpoint}", query)

    async def get_current_weather(self, lat: float, lng: float) -> WeatherObservation:
        """
        Current conditions at (lat, lng).

        Raises
        ------
        GatewayUnavailableError
            On transport failure, non-2xx status, or an unparseable body.
        """
        data = await self._request("current.json", lat, lng, aqi="yes")
        try:
            observation = parse_current(data)
        except (KeyError, TypeError, ValueError, InvalidInputError) as e:
            raise GatewayUnavailableError(self.provider, f"unexpected payload: {e}") from e

        logger.debug(
            "Weather at (%.4f, %.4f): %s, %.0f%% humidity",
            lat, lng, observation.condition, observation.humidity,
            extra={"lat": lat, "lng": lng},
        )
        return observation

    async def get_forecast(self, lat: float, lng: float, days: int = MAX_FORECAST_DAYS) -> List[DailyForecast]:
        """Daily outlook; falls back to fallback_forecast() on any failure."""
        days = max(1, min(days, MAX_FORECAST_DAYS))
        try:
            data = await self._request("forecast.json", lat, lng, days=days, aqi="no", alerts="no")
            forecasts = parse_forecast(data)
        except GatewayUnavailableError as e:
            logger.warning("Forecast unavailable, using fallback: %s", e.message)
            return fallback_forecast(days=days)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Unexpected forecast payload, using fallback: %s", e)
            return fallback_forecast(days=days)

        if not forecasts:
            return fallback_forecast(days=days)

        logger.info(
            "Fetched %d-day forecast for lat=%.4f, lng=%.4f",
            len(forecasts), lat, lng,
        )
        return forecasts

    async def get_location_name(self, lat: float, lng: float) -> str:
        """'name, region, country' for the point.  Raises GatewayUnavailableError."""
        data = await self._request("current.json", lat, lng)
        try:
            return format_location_name(data)
        except (KeyError, TypeError) as e:
            raise GatewayUnavailableError(self.provider, f"unexpected payload: {e}") from e
