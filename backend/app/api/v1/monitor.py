"""
FastAPI route: Monitored location.

The monitor is the server-side equivalent of the dashboard's selected
map point: one coordinate, refreshed every REFRESH_INTERVAL_SECONDS.

    POST /api/v1/monitor/select     — change the selection, fetch now
    POST /api/v1/monitor/refresh    — re-evaluate now (default location if
                                      nothing is selected yet)
    GET  /api/v1/monitor/status     — scheduler state
    GET  /api/v1/monitor/snapshot   — latest snapshot of the selection
    POST /api/v1/monitor/stop       — pause periodic refresh
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from backend.app.api.deps import get_scheduler
from backend.app.api.schemas import LocationInput
from backend.app.api.v1.assess import snapshot_response
from backend.app.core.config import settings
from backend.app.pipeline.scheduler import RefreshScheduler
from backend.app.risk.models import Coordinates

router = APIRouter(prefix="/api/v1/monitor", tags=["monitor"])


def _superseded(scheduler: RefreshScheduler):
    return {"superseded": True, "status": scheduler.status()}


@router.post("/select", summary="Select the monitored location")
async def select_location(
    req: LocationInput,
    scheduler: RefreshScheduler = Depends(get_scheduler),
):
    snapshot = await scheduler.select(req.to_coordinates())
    if snapshot is None:
        return _superseded(scheduler)
    return snapshot_response(snapshot)


@router.post("/refresh", summary="Refresh the monitored location now")
async def refresh_location(scheduler: RefreshScheduler = Depends(get_scheduler)):
    if scheduler.coordinates is None:
        snapshot = await scheduler.select(
            Coordinates(settings.DEFAULT_LATITUDE, settings.DEFAULT_LONGITUDE)
        )
    else:
        snapshot = await scheduler.refresh_now()
    if snapshot is None:
        return _superseded(scheduler)
    return snapshot_response(snapshot)


@router.get("/status", summary="Scheduler state")
async def monitor_status(scheduler: RefreshScheduler = Depends(get_scheduler)):
    return scheduler.status()


@router.get("/snapshot", summary="Latest snapshot")
async def latest_snapshot(scheduler: RefreshScheduler = Depends(get_scheduler)):
    if scheduler.latest_snapshot is None:
        raise HTTPException(status_code=404, detail="No monitored location has been assessed yet.")
    return snapshot_response(scheduler.latest_snapshot)


@router.post("/stop", summary="Pause periodic refresh")
async def stop_monitoring(scheduler: RefreshScheduler = Depends(get_scheduler)):
    await scheduler.stop()
    return scheduler.status()
