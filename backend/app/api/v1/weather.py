"""
FastAPI route: Weather outlook.

Daily forecast for a coordinate from WeatherAPI.com.  Display-only: the
outlook does not feed the risk scores.  Falls back to a synthetic 3-day
outlook when the provider is unavailable.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from backend.app.api.deps import get_weather_client
from backend.app.ingestion.weather_client import MAX_FORECAST_DAYS, WeatherApiClient
from backend.app.risk.models import Coordinates

router = APIRouter(prefix="/api/v1/weather", tags=["weather"])


@router.get("/forecast", summary="Daily weather outlook")
async def weather_forecast(
    latitude: float = Query(..., ge=-90, le=90, examples=[28.6139]),
    longitude: float = Query(..., ge=-180, le=180, examples=[77.2090]),
    days: int = Query(MAX_FORECAST_DAYS, ge=1, le=MAX_FORECAST_DAYS),
    client: WeatherApiClient = Depends(get_weather_client),
):
    coordinates = Coordinates(latitude, longitude)
    forecasts = await client.get_forecast(coordinates.lat, coordinates.lng, days=days)
    return {
        "location": coordinates.to_dict(),
        "days": len(forecasts),
        "forecast": [f.to_dict() for f in forecasts],
    }
