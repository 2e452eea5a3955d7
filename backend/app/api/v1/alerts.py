"""
FastAPI route: Alert lifecycle.

Provides endpoints to:
    GET  /api/v1/alerts                     — actionable alerts, newest first
    GET  /api/v1/alerts/history             — every alert ever raised
    GET  /api/v1/alerts/summary             — counts by state and severity
    POST /api/v1/alerts/{id}/acknowledge    — hide from the actionable view
    POST /api/v1/alerts/{id}/dismiss        — deactivate for good

Acknowledge and dismiss are idempotent and never 404: an unknown id (the
alert list may have refreshed under the user) simply reports
updated=false.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.app.alerts.lifecycle import AlertLifecycleStore
from backend.app.api.deps import get_store
from backend.app.api.schemas import AlertActionResponse
from backend.app.risk.models import Severity

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


@router.get("", summary="Active alerts")
async def list_active_alerts(
    severity: Optional[Severity] = Query(None, description="Only this severity"),
    store: AlertLifecycleStore = Depends(get_store),
):
    alerts = store.active_alerts()
    if severity is not None:
        alerts = [a for a in alerts if a.severity == severity]
    return {
        "count": len(alerts),
        "critical_count": store.critical_count(),
        "alerts": [a.to_dict() for a in alerts],
    }


@router.get("/history", summary="All alerts including acknowledged and dismissed")
async def alert_history(store: AlertLifecycleStore = Depends(get_store)):
    alerts = store.all_alerts()
    return {"count": len(alerts), "alerts": [a.to_dict() for a in alerts]}


@router.get("/summary", summary="Alert counts")
async def alert_summary(store: AlertLifecycleStore = Depends(get_store)):
    return store.summary()


@router.post(
    "/{alert_id}/acknowledge",
    response_model=AlertActionResponse,
    summary="Acknowledge an alert",
)
async def acknowledge_alert(alert_id: str, store: AlertLifecycleStore = Depends(get_store)):
    return AlertActionResponse(
        alert_id=alert_id,
        action="acknowledge",
        updated=store.acknowledge(alert_id),
    )


@router.post(
    "/{alert_id}/dismiss",
    response_model=AlertActionResponse,
    summary="Dismiss an alert",
)
async def dismiss_alert(alert_id: str, store: AlertLifecycleStore = Depends(get_store)):
    return AlertActionResponse(
        alert_id=alert_id,
        action="dismiss",
        updated=store.dismiss(alert_id),
    )
