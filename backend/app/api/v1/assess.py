"""
FastAPI route: One-shot Location Risk Assessment.

Runs the full pipeline once for an arbitrary coordinate, outside the
monitored selection:

    1. Fetch weather, elevation and recent earthquakes (with fallback)
    2. Resolve a place name
    3. Score all five hazards
    4. Raise threshold alerts and fold them into the alert store
       (the monitored snapshot and its subscribers are left alone)
    5. Return the LocationSnapshot

Provider outages never fail the request; the snapshot comes back with
degraded=true instead.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from backend.app.api.deps import get_pipeline
from backend.app.api.schemas import LocationInput
from backend.app.pipeline.assessment import RiskPipeline
from backend.app.risk.models import LocationSnapshot, Severity
from backend.app.risk.scoring import classify_risk_band

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["assessment"])


def snapshot_response(snapshot: LocationSnapshot) -> Dict[str, Any]:
    """Snapshot dict plus a display band for every score."""
    body = snapshot.to_dict()
    body["risk_bands"] = {
        name: classify_risk_band(value).value
        for name, value in snapshot.risk_score.to_dict().items()
    }
    body["critical_alerts"] = sum(1 for a in snapshot.alerts if a.severity == Severity.CRITICAL)
    return body


@router.post(
    "/assess",
    summary="Unified Location Risk Assessment",
    description=(
        "Fetches live conditions for the coordinate, scores flood, heavy rain, "
        "landslide, tsunami and earthquake risk, raises threshold alerts and "
        "returns the complete snapshot."
    ),
)
async def assess_location_risk(
    req: LocationInput,
    pipeline: RiskPipeline = Depends(get_pipeline),
):
    coordinates = req.to_coordinates()
    logger.info(
        "=== RISK ASSESSMENT: lat=%.4f, lng=%.4f ===",
        coordinates.lat, coordinates.lng,
    )
    snapshot = await pipeline.get_snapshot(coordinates)
    return snapshot_response(snapshot)
