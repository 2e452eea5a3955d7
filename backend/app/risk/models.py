"""
models.py — Value types shared across the risk engine.

Defines:
    • HazardKind     — the five monitored hazard categories
    • Severity       — alert severity tiers
    • RiskBand       — display band for a 0–100 score
    • Coordinates    — validated, hashable geographic point
    • WeatherObservation / ElevationSample / SeismicEvent — gateway inputs
    • DailyForecast  — one day of the multi-day weather outlook
    • RiskScore      — five component scores plus the weighted overall
    • Alert          — a user-facing, severity-tagged notification
    • LocationSnapshot — everything one fetch of one coordinate produced

═══════════════════════════════════════════════════════════════════════════
OWNERSHIP
═══════════════════════════════════════════════════════════════════════════

A LocationSnapshot is a value: it is rebuilt from scratch on every fetch and
has no identity across fetches.  Alerts are different — their lifecycle
flags (acknowledged / is_active) belong to the AlertLifecycleStore and
survive refreshes.  The snapshot only carries a copy of the actionable view
at the moment it was built.

    Field           Owner                 Replaced on refresh?
    ─────────────   ───────────────────   ────────────────────
    weather         EnvironmentGateway    yes
    elevation       EnvironmentGateway    yes
    seismic         EnvironmentGateway    yes
    risk_score      scoring               yes
    alerts          AlertLifecycleStore   no (merged, then copied in)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from backend.app.core.errors import InvalidInputError


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class HazardKind(str, Enum):
    """Monitored disaster categories."""
    FLOOD = "flood"
    HEAVY_RAIN = "heavy_rain"
    LANDSLIDE = "landslide"
    TSUNAMI = "tsunami"
    EARTHQUAKE = "earthquake"


class Severity(str, Enum):
    """Alert severity tiers, lowest first."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskBand(str, Enum):
    """Display band for a single 0–100 score."""
    LOW = "low"             # 0–39
    MEDIUM = "medium"       # 40–59
    HIGH = "high"           # 60–79
    CRITICAL = "critical"   # 80–100


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_finite(value: Any, name: str) -> float:
    """Coerce to float and reject NaN / ±inf."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}", field=name)
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be finite, got {value!r}", field=name)
    return number


def _require_range(value: Any, name: str, low: float, high: float) -> float:
    number = _require_finite(value, name)
    if not (low <= number <= high):
        raise InvalidInputError(
            f"{name} must be in [{low:g}, {high:g}], got {number}",
            field=name, value=number,
        )
    return number


# ═══════════════════════════════════════════════════════════════════════════
# Location
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Coordinates:
    """
    A geographic point in decimal degrees.

    Immutable and compared by value, so two selections of the same point are
    the same selection.  Construction fails with InvalidInputError for NaN or
    out-of-range values rather than letting nonsense reach the scorer.
    """
    lat: float
    lng: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "lat", _require_range(self.lat, "lat", -90.0, 90.0))
        object.__setattr__(self, "lng", _require_range(self.lng, "lng", -180.0, 180.0))

    def bucket(self, precision: int = 2) -> Tuple[float, float]:
        """Rounded (lat, lng) — 2 decimals ≈ 1 km cells."""
        return (round(self.lat, precision), round(self.lng, precision))

    def label(self) -> str:
        """Alert location label, e.g. 'Lat: 28.6139, Lng: 77.2090'."""
        return f"Lat: {self.lat:.4f}, Lng: {self.lng:.4f}"

    def short_label(self) -> str:
        """Fallback place name, e.g. '28.6139, 77.2090'."""
        return f"{self.lat:.4f}, {self.lng:.4f}"

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


# ═══════════════════════════════════════════════════════════════════════════
# Gateway inputs
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class WeatherObservation:
    """
    Current conditions at a coordinate.

    Attributes
    ----------
    temperature : float
        Air temperature in °C.
    humidity : float
        Relative humidity, 0–100 %.
    wind_speed : float
        km/h.
    pressure : float
        Surface pressure in mb.
    visibility : float
        km.
    cloud_cover : float
        0–100 %.
    precipitation : float
        mm, ≥ 0.
    rain_chance : float
        0–100 %.
    condition : str
        Provider's condition text ("Partly Cloudy").
    """
    temperature: float
    humidity: float
    wind_speed: float
    pressure: float
    visibility: float
    cloud_cover: float = 0.0
    precipitation: float = 0.0
    rain_chance: float = 0.0
    condition: str = ""
    icon: Optional[str] = None
    feels_like: Optional[float] = None
    uv_index: Optional[float] = None

    def validate(self) -> "WeatherObservation":
        """Raise InvalidInputError for NaN or out-of-range fields."""
        for name in ("temperature", "wind_speed", "pressure", "visibility"):
            _require_finite(getattr(self, name), name)
        _require_range(self.humidity, "humidity", 0.0, 100.0)
        _require_range(self.cloud_cover, "cloud_cover", 0.0, 100.0)
        _require_range(self.rain_chance, "rain_chance", 0.0, 100.0)
        if _require_finite(self.precipitation, "precipitation") < 0:
            raise InvalidInputError(
                f"precipitation must be >= 0, got {self.precipitation}",
                field="precipitation",
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "wind_speed": self.wind_speed,
            "pressure": self.pressure,
            "visibility": self.visibility,
            "cloud_cover": self.cloud_cover,
            "precipitation": self.precipitation,
            "rain_chance": self.rain_chance,
            "condition": self.condition,
            "icon": self.icon,
            "feels_like": self.feels_like,
            "uv_index": self.uv_index,
        }


@dataclass(frozen=True)
class ElevationSample:
    """Terrain elevation in metres with its provenance."""
    elevation: float
    source: str = "open-meteo"
    accuracy: str = "high"

    def validate(self) -> "ElevationSample":
        _require_finite(self.elevation, "elevation")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elevation": self.elevation,
            "source": self.source,
            "accuracy": self.accuracy,
        }


@dataclass(frozen=True)
class SeismicEvent:
    """A recent earthquake near the coordinate — displayed, never scored."""
    magnitude: float
    depth: float
    location: str
    coordinates: Coordinates
    time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "magnitude": self.magnitude,
            "depth": self.depth,
            "location": self.location,
            "coordinates": self.coordinates.to_dict(),
            "time": self.time.isoformat(),
        }


@dataclass(frozen=True)
class DailyForecast:
    """One day of the weather outlook."""
    date: date
    max_temp: float
    min_temp: float
    condition: str
    icon: str = ""
    chance_of_rain: float = 0.0
    precipitation: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "max_temp": self.max_temp,
            "min_temp": self.min_temp,
            "condition": self.condition,
            "icon": self.icon,
            "chance_of_rain": self.chance_of_rain,
            "precipitation": self.precipitation,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Engine outputs
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RiskScore:
    """
    Per-hazard and overall risk, each an integer in [0, 100].

    `overall` is never set independently: it is derived from the five
    components by scoring.combine_overall().
    """
    flood: int
    heavy_rain: int
    landslide: int
    tsunami: int
    earthquake: int
    overall: int

    def components(self) -> Dict[HazardKind, int]:
        return {
            HazardKind.FLOOD: self.flood,
            HazardKind.HEAVY_RAIN: self.heavy_rain,
            HazardKind.LANDSLIDE: self.landslide,
            HazardKind.TSUNAMI: self.tsunami,
            HazardKind.EARTHQUAKE: self.earthquake,
        }

    def to_dict(self) -> Dict[str, int]:
        return {
            "overall": self.overall,
            "flood": self.flood,
            "heavy_rain": self.heavy_rain,
            "landslide": self.landslide,
            "tsunami": self.tsunami,
            "earthquake": self.earthquake,
        }


@dataclass
class Alert:
    """
    A discrete notification derived from a RiskScore crossing a threshold.

    `acknowledged` and `is_active` are independent flags.  Acknowledging
    hides the alert from the actionable view but keeps it active; dismissing
    sets is_active=False for good.
    """
    id: str
    hazard: HazardKind
    title: str
    message: str
    severity: Severity
    coordinates: Coordinates
    location: str
    timestamp: datetime = field(default_factory=_now)
    is_active: bool = True
    acknowledged: bool = False

    @property
    def is_actionable(self) -> bool:
        return self.is_active and not self.acknowledged

    def copy(self) -> "Alert":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hazard": self.hazard.value,
            "title": self.title,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "coordinates": self.coordinates.to_dict(),
            "location": self.location,
            "is_active": self.is_active,
            "acknowledged": self.acknowledged,
        }


@dataclass
class LocationSnapshot:
    """The unit handed to consumers after each fetch of one coordinate."""
    coordinates: Coordinates
    location_name: str
    weather: WeatherObservation
    elevation: ElevationSample
    seismic: List[SeismicEvent]
    risk_score: RiskScore
    alerts: List[Alert]
    last_updated: datetime = field(default_factory=_now)
    degraded_sources: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """True when any part of the snapshot came from fallback data."""
        return bool(self.degraded_sources)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coordinates": self.coordinates.to_dict(),
            "location_name": self.location_name,
            "weather": self.weather.to_dict(),
            "elevation": self.elevation.to_dict(),
            "seismic": [s.to_dict() for s in self.seismic],
            "risk_score": self.risk_score.to_dict(),
            "alerts": [a.to_dict() for a in self.alerts],
            "last_updated": self.last_updated.isoformat(),
            "degraded": self.degraded,
            "degraded_sources": list(self.degraded_sources),
        }
