"""
scoring.py — Multi-hazard Risk Scoring Engine.

Turns one weather observation, one elevation sample and a coordinate into
five per-hazard scores and one overall score, each an integer in [0, 100].

The function is pure: no I/O, no clock reads unless the caller omits `at`,
and no hidden state.  Identical inputs inside the same time window always
produce identical scores.

═══════════════════════════════════════════════════════════════════════════
COMPONENT FORMULAS
═══════════════════════════════════════════════════════════════════════════

    flood      = clamp(0, 100, humidity × 0.8 + (elevation < 100 ? 30 : 0))
    heavy_rain = clamp(0, 100, humidity × 0.6 + cloud_cover × 0.4)

    landslide  = clamp(0, 100, elevation / 50 + humidity × 0.3)   if elevation > 500
                 clamp(0,  30, humidity × 0.2)                    otherwise

    tsunami    ∈ [10, 50)   if elevation < 50 and (lat < 15 or lng > 75)
                 [0, 15)    otherwise

    earthquake ∈ [20, 80)   if lat > 28   (seismically active northern belt)
                 [10, 40)   otherwise

Every component is rounded half-up to an integer before it is reported.

═══════════════════════════════════════════════════════════════════════════
DETERMINISTIC HAZARD BASELINES
═══════════════════════════════════════════════════════════════════════════

Tsunami and earthquake have no observational input here, only a regional
band.  The position inside the band is a hash-derived draw:

    u = SHA-256("hazard|lat|lng|window")[:8] / 2^64          ∈ [0, 1)
    value = band_low + (band_high − band_low) × u

    lat, lng  rounded to 2 decimals (≈ 1 km cells)
    window    = floor(unix_time / SCORE_TIME_BUCKET_SECONDS)   (default 1 h)

Repeated calls for the same place inside one window agree exactly, while
the value still drifts slowly from window to window.

═══════════════════════════════════════════════════════════════════════════
OVERALL SCORE
═══════════════════════════════════════════════════════════════════════════

    overall = round(0.25 · flood + 0.20 · heavy_rain + 0.20 · landslide
                    + 0.15 · tsunami + 0.20 · earthquake)

computed from the reported integer components and rounded exactly once,
after weighting, then clamped to [0, 100].  Anyone holding a RiskScore can
therefore recompute `overall` from its own fields.

═══════════════════════════════════════════════════════════════════════════
RISK BANDS
═══════════════════════════════════════════════════════════════════════════

    score ≥ 80   critical
    score ≥ 60   high
    score ≥ 40   medium
    otherwise    low
"""

from __future__ import annotations

import hashlib
import logging
import math
from datetime import datetime, timezone
from typing import Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.errors import InvalidInputError
from backend.app.risk.models import (
    Coordinates,
    ElevationSample,
    HazardKind,
    RiskBand,
    RiskScore,
    WeatherObservation,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Constants — Reference Policy
# ═══════════════════════════════════════════════════════════════════════════

# Overall weights (sum to 1.0)
W_FLOOD = 0.25
W_HEAVY_RAIN = 0.20
W_LANDSLIDE = 0.20
W_TSUNAMI = 0.15
W_EARTHQUAKE = 0.20

# Flood
FLOOD_HUMIDITY_FACTOR = 0.8
LOW_LYING_ELEVATION_M = 100.0
LOW_LYING_BONUS = 30.0

# Heavy rain
RAIN_HUMIDITY_FACTOR = 0.6
RAIN_CLOUD_FACTOR = 0.4

# Landslide
LANDSLIDE_ELEVATION_M = 500.0
LANDSLIDE_ELEVATION_DIVISOR = 50.0
LANDSLIDE_HUMIDITY_FACTOR = 0.3
LANDSLIDE_FLAT_HUMIDITY_FACTOR = 0.2
LANDSLIDE_FLAT_CAP = 30.0

# Tsunami
TSUNAMI_COASTAL_ELEVATION_M = 50.0
TSUNAMI_LAT_BELOW = 15.0
TSUNAMI_LNG_ABOVE = 75.0
TSUNAMI_COASTAL_BAND: Tuple[float, float] = (10.0, 50.0)
TSUNAMI_INLAND_BAND: Tuple[float, float] = (0.0, 15.0)

# Earthquake
EARTHQUAKE_ACTIVE_LAT_ABOVE = 28.0
EARTHQUAKE_ACTIVE_BAND: Tuple[float, float] = (20.0, 80.0)
EARTHQUAKE_QUIET_BAND: Tuple[float, float] = (10.0, 40.0)

# Risk band thresholds
BAND_CRITICAL = 80
BAND_HIGH = 60
BAND_MEDIUM = 40

BASELINE_PRECISION = 2


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def round_half_up(value: float) -> int:
    """
    Round .5 away from zero for positive values (2.5 → 3).

    Python's round() is banker's rounding (2.5 → 2); scores must use the
    conventional rule so that e.g. 72.5 reports as 73.
    """
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def time_bucket(at: Optional[datetime] = None, window_seconds: Optional[int] = None) -> int:
    """Index of the baseline window containing `at` (default: now)."""
    window = window_seconds or settings.SCORE_TIME_BUCKET_SECONDS
    if at is None:
        at = datetime.now(timezone.utc)
    elif at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return int(at.timestamp() // window)


def baseline_draw(hazard: HazardKind, coordinates: Coordinates, bucket: int) -> float:
    """
    Stable pseudo-random value in [0, 1) for (hazard, place, window).

    Examples
    --------
    >>> c = Coordinates(28.6139, 77.209)
    >>> baseline_draw(HazardKind.TSUNAMI, c, 1) == baseline_draw(HazardKind.TSUNAMI, c, 1)
    True
    """
    lat, lng = coordinates.bucket(BASELINE_PRECISION)
    key = f"{hazard.value}|{lat:.{BASELINE_PRECISION}f}|{lng:.{BASELINE_PRECISION}f}|{bucket}"
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") / float(2 ** 64)


def _within_band(band: Tuple[float, float], draw: float) -> float:
    low, high = band
    return low + (high - low) * draw


# ═══════════════════════════════════════════════════════════════════════════
# Component Scores (unrounded)
# ═══════════════════════════════════════════════════════════════════════════

def flood_risk(humidity: float, elevation_m: float) -> float:
    """Humidity-driven flood risk with a low-lying terrain bonus."""
    bonus = LOW_LYING_BONUS if elevation_m < LOW_LYING_ELEVATION_M else 0.0
    return clamp(humidity * FLOOD_HUMIDITY_FACTOR + bonus)


def heavy_rain_risk(humidity: float, cloud_cover: float) -> float:
    return clamp(humidity * RAIN_HUMIDITY_FACTOR + cloud_cover * RAIN_CLOUD_FACTOR)


def landslide_risk(humidity: float, elevation_m: float) -> float:
    """
    Terrain-dominated above 500 m; capped at 30 on flat ground.

    Examples
    --------
    >>> landslide_risk(80, 2000)   # 40 + 24
    64.0
    >>> landslide_risk(80, 200)    # 16, under the flat cap
    16.0
    """
    if elevation_m > LANDSLIDE_ELEVATION_M:
        return clamp(
            elevation_m / LANDSLIDE_ELEVATION_DIVISOR
            + humidity * LANDSLIDE_HUMIDITY_FACTOR
        )
    return clamp(humidity * LANDSLIDE_FLAT_HUMIDITY_FACTOR, 0.0, LANDSLIDE_FLAT_CAP)


def is_coastal_exposure(coordinates: Coordinates, elevation_m: float) -> bool:
    """Low ground in the southern latitudes or the eastern seaboard."""
    return elevation_m < TSUNAMI_COASTAL_ELEVATION_M and (
        coordinates.lat < TSUNAMI_LAT_BELOW or coordinates.lng > TSUNAMI_LNG_ABOVE
    )


def tsunami_risk(coordinates: Coordinates, elevation_m: float, bucket: int) -> float:
    band = (
        TSUNAMI_COASTAL_BAND
        if is_coastal_exposure(coordinates, elevation_m)
        else TSUNAMI_INLAND_BAND
    )
    return _within_band(band, baseline_draw(HazardKind.TSUNAMI, coordinates, bucket))


def earthquake_risk(coordinates: Coordinates, bucket: int) -> float:
    band = (
        EARTHQUAKE_ACTIVE_BAND
        if coordinates.lat > EARTHQUAKE_ACTIVE_LAT_ABOVE
        else EARTHQUAKE_QUIET_BAND
    )
    return _within_band(band, baseline_draw(HazardKind.EARTHQUAKE, coordinates, bucket))


# ═══════════════════════════════════════════════════════════════════════════
# Combination & Classification
# ═══════════════════════════════════════════════════════════════════════════

def combine_overall(
    flood: int,
    heavy_rain: int,
    landslide: int,
    tsunami: int,
    earthquake: int,
) -> int:
    """
    Weighted overall score, rounded once after weighting.

    Examples
    --------
    >>> combine_overall(52, 55, 13, 8, 60)   # 13 + 11 + 2.6 + 1.2 + 12 = 39.8
    40
    """
    weighted = (
        flood * W_FLOOD
        + heavy_rain * W_HEAVY_RAIN
        + landslide * W_LANDSLIDE
        + tsunami * W_TSUNAMI
        + earthquake * W_EARTHQUAKE
    )
    return int(clamp(round_half_up(weighted)))


def classify_risk_band(score: float) -> RiskBand:
    """Map a 0–100 score to its display band."""
    if score >= BAND_CRITICAL:
        return RiskBand.CRITICAL
    if score >= BAND_HIGH:
        return RiskBand.HIGH
    if score >= BAND_MEDIUM:
        return RiskBand.MEDIUM
    return RiskBand.LOW


# ═══════════════════════════════════════════════════════════════════════════
# Core Scoring Entry Point
# ═══════════════════════════════════════════════════════════════════════════

def calculate_risk_scores(
    weather: WeatherObservation,
    elevation: ElevationSample,
    coordinates: Coordinates,
    *,
    at: Optional[datetime] = None,
    window_seconds: Optional[int] = None,
) -> RiskScore:
    """
    Compute the full RiskScore for one coordinate.

    Parameters
    ----------
    weather : WeatherObservation
        Current conditions (humidity and cloud cover are used).
    elevation : ElevationSample
        Terrain elevation in metres.
    coordinates : Coordinates
        The assessed location.
    at : datetime | None
        Reference time for the baseline window; defaults to now.
    window_seconds : int | None
        Baseline window length; defaults to SCORE_TIME_BUCKET_SECONDS.

    Returns
    -------
    RiskScore

    Raises
    ------
    InvalidInputError
        If any input is malformed (NaN, out of range, wrong type).

    Examples
    --------
    >>> w = WeatherObservation(28, 65, 12, 1013, 10, cloud_cover=40)
    >>> s = calculate_risk_scores(w, ElevationSample(200), Coordinates(20.0, 70.0))
    >>> (s.flood, s.heavy_rain)
    (52, 55)
    """
    if not isinstance(coordinates, Coordinates):
        raise InvalidInputError("coordinates must be a Coordinates value", field="coordinates")
    weather.validate()
    elevation.validate()

    elevation_m = float(elevation.elevation)
    humidity = float(weather.humidity)
    bucket = time_bucket(at, window_seconds)

    flood = round_half_up(flood_risk(humidity, elevation_m))
    heavy_rain = round_half_up(heavy_rain_risk(humidity, float(weather.cloud_cover)))
    landslide = round_half_up(landslide_risk(humidity, elevation_m))
    tsunami = round_half_up(tsunami_risk(coordinates, elevation_m, bucket))
    earthquake = round_half_up(earthquake_risk(coordinates, bucket))

    overall = combine_overall(flood, heavy_rain, landslide, tsunami, earthquake)

    logger.debug(
        "Scored (%.4f, %.4f): flood=%d rain=%d landslide=%d tsunami=%d quake=%d overall=%d",
        coordinates.lat, coordinates.lng,
        flood, heavy_rain, landslide, tsunami, earthquake, overall,
        extra={"lat": coordinates.lat, "lng": coordinates.lng, "overall": overall},
    )

    return RiskScore(
        flood=flood,
        heavy_rain=heavy_rain,
        landslide=landslide,
        tsunami=tsunami,
        earthquake=earthquake,
        overall=overall,
    )
