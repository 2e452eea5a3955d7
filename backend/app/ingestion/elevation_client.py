"""
Open-Meteo elevation client.

Endpoint: https://api.open-meteo.com/v1/elevation?latitude=..&longitude=..
Response: {"elevation": [216.0]}  (Copernicus DEM, 90 m)

No API key.  When the service is unreachable the gateway substitutes
approximate_elevation(), a coarse latitude-band estimate for the Indian
subcontinent.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.errors import GatewayUnavailableError, InvalidInputError
from backend.app.ingestion.base import ProviderClient
from backend.app.risk.models import Coordinates, ElevationSample

logger = logging.getLogger(__name__)


# Latitude bands → representative elevation (m)
_HIMALAYAN_LAT = 30.0
_CENTRAL_LAT = 20.0
_HIMALAYAN_ELEVATION = 2000.0
_CENTRAL_ELEVATION = 600.0
_SOUTHERN_ELEVATION = 300.0


def approximate_elevation(coordinates: Coordinates) -> ElevationSample:
    """
    Deterministic elevation estimate by latitude band.

        lat > 30   → 2000 m   (Himalayan foothills and above)
        lat > 20   →  600 m   (central plateau)
        otherwise  →  300 m
    """
    if coordinates.lat > _HIMALAYAN_LAT:
        elevation = _HIMALAYAN_ELEVATION
    elif coordinates.lat > _CENTRAL_LAT:
        elevation = _CENTRAL_ELEVATION
    else:
        elevation = _SOUTHERN_ELEVATION
    return ElevationSample(elevation=elevation, source="approximation", accuracy="low")


class ElevationClient(ProviderClient):
    """Async Open-Meteo elevation lookup."""

    provider = "open-meteo"

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.url = url or settings.OPEN_METEO_ELEVATION_URL

    async def get_elevation(self, lat: float, lng: float) -> ElevationSample:
        data = await self._get_json(self.url, {"latitude": lat, "longitude": lng})
        try:
            value = data["elevation"][0]
            sample = ElevationSample(elevation=float(value)).validate()
        except (KeyError, IndexError, TypeError, ValueError, InvalidInputError) as e:
            raise GatewayUnavailableError(self.provider, f"unexpected payload: {e}") from e

        logger.debug("Elevation at (%.4f, %.4f): %.0f m", lat, lng, sample.elevation)
        return sample
