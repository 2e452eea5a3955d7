"""
scheduler.py — Periodic refresh of the selected coordinate.

═══════════════════════════════════════════════════════════════════════════
STATE MACHINE
═══════════════════════════════════════════════════════════════════════════

    IDLE ──select()/tick──▶ FETCHING ──complete──▶ IDLE (timer re-armed)
                               │
                               └──select()──▶ FETCHING (new generation)

Every select() bumps a generation counter.  A fetch remembers the
generation it started under; when it completes under a different one the
result is dropped without touching the alert store, latest_snapshot or
subscribers.  The older request is not cancelled, it simply loses.

═══════════════════════════════════════════════════════════════════════════
TIMING
═══════════════════════════════════════════════════════════════════════════

    • select()       cancels the pending timer and fetches immediately
    • refresh_now()  joins the in-flight fetch if there is one for the
                     current generation, otherwise fetches immediately
    • timer          armed from the completion of a current-generation
                     fetch, never from its start, so refreshes cannot
                     overlap however slow the providers are
    • stop()         cancels the timer and invalidates in-flight fetches

A failing scheduled tick is logged and the timer is re-armed; one bad
refresh does not end monitoring.

Each refresh runs in its own task with trigger (select, refresh or timer),
generation and coordinates bound to the log context.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from backend.app.core.config import settings
from backend.app.core.logging_config import bind_context, set_request_context
from backend.app.pipeline.assessment import RiskPipeline
from backend.app.risk.models import Coordinates, LocationSnapshot

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"


class RefreshScheduler:
    """
    Drives RiskPipeline for one selected coordinate at a fixed interval.

    Usage:
        scheduler = RefreshScheduler(pipeline)
        snapshot = await scheduler.select(Coordinates(28.6139, 77.2090))
        ...
        await scheduler.stop()
    """

    def __init__(self, pipeline: RiskPipeline, interval: Optional[float] = None):
        self.pipeline = pipeline
        self.interval = interval if interval is not None else settings.REFRESH_INTERVAL_SECONDS

        self._generation = 0
        self._coordinates: Optional[Coordinates] = None
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._inflight_generation = -1

        self.refresh_count = 0
        self.stale_dropped = 0
        self.last_refreshed_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.latest_snapshot: Optional[LocationSnapshot] = None

    # ── Properties ────────────────────────────────────────────────────

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return self._coordinates

    @property
    def state(self) -> SchedulerState:
        if (
            self._inflight is not None
            and not self._inflight.done()
            and self._inflight_generation == self._generation
        ):
            return SchedulerState.FETCHING
        return SchedulerState.IDLE

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ── Public API ────────────────────────────────────────────────────

    async def select(self, coordinates: Coordinates) -> Optional[LocationSnapshot]:
        """
        Make `coordinates` the monitored location and fetch it now.

        Returns the snapshot, or None if another select() superseded this
        one before its fetch completed.
        """
        self._generation += 1
        self._coordinates = coordinates
        self._cancel_timer()
        logger.info(
            "Selected (%.4f, %.4f)", coordinates.lat, coordinates.lng,
            extra={"lat": coordinates.lat, "lng": coordinates.lng, "generation": self._generation},
        )
        return await self._refresh(self._generation, "select")

    async def refresh_now(self) -> Optional[LocationSnapshot]:
        """Re-evaluate the current selection; None if nothing is selected."""
        if self._coordinates is None:
            return None
        if self.state == SchedulerState.FETCHING:
            return await asyncio.shield(self._inflight)
        self._cancel_timer()
        return await self._refresh(self._generation, "refresh")

    async def stop(self) -> None:
        """Stop periodic refresh.  In-flight results will be discarded."""
        self._generation += 1
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        logger.info("Refresh scheduler stopped")

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "generation": self._generation,
            "coordinates": self._coordinates.to_dict() if self._coordinates else None,
            "interval_seconds": self.interval,
            "timer_armed": self.timer_armed,
            "refresh_count": self.refresh_count,
            "stale_dropped": self.stale_dropped,
            "last_refreshed_at": (
                self.last_refreshed_at.isoformat() if self.last_refreshed_at else None
            ),
            "last_error": self.last_error,
        }

    # ── Internals ─────────────────────────────────────────────────────

    async def _refresh(self, generation: int, trigger: str) -> Optional[LocationSnapshot]:
        task = asyncio.create_task(self._run(generation, self._coordinates, trigger))
        self._inflight = task
        self._inflight_generation = generation
        # Shielded so a cancelled caller does not abort a fetch others may join.
        return await asyncio.shield(task)

    async def _run(
        self, generation: int, coordinates: Coordinates, trigger: str,
    ) -> Optional[LocationSnapshot]:
        # Own task, so this binding stays out of the caller's context.
        bind_context(
            trigger=trigger, generation=generation, lat=coordinates.lat, lng=coordinates.lng,
        )
        try:
            reading, name = await self.pipeline.collect(coordinates)

            if generation != self._generation:
                self.stale_dropped += 1
                logger.info(
                    "Dropping stale result for (%.4f, %.4f)",
                    coordinates.lat, coordinates.lng,
                    extra={"generation": generation},
                )
                return None

            snapshot = self.pipeline.assess(coordinates, reading, location_name=name)
            self.latest_snapshot = snapshot
            self.refresh_count += 1
            self.last_refreshed_at = datetime.now(timezone.utc)
            self.last_error = None
            return snapshot
        except Exception as e:
            if generation == self._generation:
                self.last_error = str(e)
            raise
        finally:
            if generation == self._generation:
                self._arm_timer(generation)

    def _arm_timer(self, generation: int) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._tick_after(generation, self.interval))

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()

    async def _tick_after(self, generation: int, delay: float) -> None:
        # Ticks belong to no request, whichever one armed the timer.
        set_request_context()
        await asyncio.sleep(delay)
        # Fired: detach so the refresh below can arm a successor.
        self._timer = None
        if generation != self._generation:
            return
        try:
            await self._refresh(generation, "timer")
        except Exception:
            logger.exception("Scheduled refresh failed")
