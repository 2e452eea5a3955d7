"""
Pydantic schemas shared by the v1 routes.

Separated from the route handlers so they are reusable across the API
modules and tests.  Response bodies are mostly the engine's own to_dict()
output; only request bodies and small envelopes are modelled here.
"""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field

from backend.app.risk.models import Coordinates, ElevationSample, WeatherObservation


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LocationInput(BaseModel):
    """
    A point picked on the map or typed in manually.  The API treats both
    identically.
    """
    latitude: float = Field(
        ..., ge=-90.0, le=90.0,
        description="Latitude in decimal degrees",
        examples=[28.6139],
    )
    longitude: float = Field(
        ..., ge=-180.0, le=180.0,
        description="Longitude in decimal degrees",
        examples=[77.2090],
    )

    def to_coordinates(self) -> Coordinates:
        return Coordinates(lat=self.latitude, lng=self.longitude)


class WeatherInput(BaseModel):
    """Current conditions supplied by the caller instead of a provider."""
    temperature: float = Field(..., examples=[28.0], description="°C")
    humidity: float = Field(..., ge=0, le=100, examples=[65.0])
    wind_speed: float = Field(0.0, ge=0, examples=[12.0], description="km/h")
    pressure: float = Field(1013.0, examples=[1013.0], description="mb")
    visibility: float = Field(10.0, ge=0, examples=[10.0], description="km")
    cloud_cover: float = Field(0.0, ge=0, le=100, examples=[40.0])
    precipitation: float = Field(0.0, ge=0, examples=[0.2], description="mm")
    rain_chance: float = Field(0.0, ge=0, le=100, examples=[25.0])
    condition: str = Field("", examples=["Partly Cloudy"])

    def to_observation(self) -> WeatherObservation:
        return WeatherObservation(**self.model_dump()).validate()


class RiskScoreRequest(BaseModel):
    """Score explicit inputs without touching any provider."""
    location: LocationInput
    weather: WeatherInput
    elevation: float = Field(..., examples=[216.0], description="metres")

    def to_elevation(self) -> ElevationSample:
        return ElevationSample(elevation=self.elevation, source="request").validate()


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class AlertActionResponse(BaseModel):
    """Outcome of acknowledge / dismiss.  Unknown ids are not an error."""
    alert_id: str
    action: str
    updated: bool


class RiskScoreResponse(BaseModel):
    scores: Dict[str, int]
    bands: Dict[str, str]
    location: Dict[str, float]
    time_bucket: Optional[int] = None
