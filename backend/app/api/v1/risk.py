"""
FastAPI route: Risk scoring without I/O.

Scores caller-supplied weather and elevation for a coordinate.  Nothing is
fetched, no alerts are raised and the alert store is untouched, which
makes this the endpoint for what-if questions ("what if humidity hits
90 %?").
"""

from __future__ import annotations

from fastapi import APIRouter

from backend.app.api.schemas import RiskScoreRequest, RiskScoreResponse
from backend.app.risk.scoring import (
    calculate_risk_scores,
    classify_risk_band,
    time_bucket,
)

router = APIRouter(prefix="/api/v1/risk", tags=["risk-scoring"])


@router.post(
    "/score",
    response_model=RiskScoreResponse,
    summary="Score explicit inputs",
    description=(
        "Returns the five hazard scores, the weighted overall score and a "
        "display band for each.  Baselines for tsunami and earthquake are "
        "stable within the returned time bucket."
    ),
)
async def score_risk(request: RiskScoreRequest):
    coordinates = request.location.to_coordinates()
    score = calculate_risk_scores(
        request.weather.to_observation(),
        request.to_elevation(),
        coordinates,
    )
    scores = score.to_dict()
    return RiskScoreResponse(
        scores=scores,
        bands={name: classify_risk_band(value).value for name, value in scores.items()},
        location=coordinates.to_dict(),
        time_bucket=time_bucket(),
    )
