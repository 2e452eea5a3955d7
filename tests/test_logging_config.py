"""
test_logging_config.py — Tests for log context, formatters and route tagging.

Covers:
    • set_request_context / bind_context / context_tag
    • JSON and pretty formatters carrying context and engine fields
    • route_context() for API paths and alert actions
    • Scheduler refreshes binding trigger and generation, with timer ticks
      detached from the request that armed them

Run with:
    pytest tests/test_logging_config.py -v
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import pytest

from backend.app.alerts.lifecycle import AlertLifecycleStore
from backend.app.core.logging_config import (
    JSONFormatter,
    PrettyFormatter,
    bind_context,
    context_tag,
    get_request_context,
    set_request_context,
)
from backend.app.core.middleware import route_context
from backend.app.ingestion.gateway import EnvironmentReading
from backend.app.pipeline.assessment import RiskPipeline
from backend.app.pipeline.scheduler import RefreshScheduler
from backend.app.risk.models import Coordinates, ElevationSample, WeatherObservation


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

BENGALURU = Coordinates(12.9716, 77.5946)


@pytest.fixture(autouse=True)
def clean_context():
    set_request_context()
    yield
    set_request_context()


def _make_record(msg="Alert raised", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "backend.app.alerts.lifecycle", logging.INFO, __file__, 42, msg, (), None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class RecordingGateway:

    async def fetch(self, coordinates):
        return EnvironmentReading(
            weather=WeatherObservation(
                temperature=28, humidity=40, wind_speed=10, pressure=1013,
                visibility=10, cloud_cover=20, precipitation=0, rain_chance=10,
            ),
            elevation=ElevationSample(900),
        )

    async def close(self):
        pass


class ContextRecordingResolver:
    """Captures the log context each refresh runs under."""

    def __init__(self):
        self.contexts = []

    async def resolve(self, coordinates):
        self.contexts.append(dict(get_request_context()))
        return coordinates.short_label()


def _make_scheduler(interval=3600.0):
    resolver = ContextRecordingResolver()
    pipeline = RiskPipeline(
        gateway=RecordingGateway(),
        store=AlertLifecycleStore(bucket_precision=2),
        resolver=resolver,
        bucket_precision=2,
    )
    return RefreshScheduler(pipeline, interval=interval), resolver


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Context
# ═══════════════════════════════════════════════════════════════════════════

class TestContext:

    def test_set_replaces(self):
        set_request_context(request_id="a", route="alerts")
        set_request_context(request_id="b")
        assert get_request_context() == {"request_id": "b"}

    def test_bind_merges(self):
        set_request_context(request_id="a")
        bind_context(generation=4)
        assert get_request_context() == {"request_id": "a", "generation": 4}

    def test_bind_does_not_mutate_previous_dict(self):
        set_request_context(request_id="a")
        before = get_request_context()
        bind_context(generation=1)
        assert before == {"request_id": "a"}

    def test_tag_prefers_request_id(self):
        ctx = {"request_id": "4f1c2a9b77e0", "trigger": "select", "generation": 3}
        assert context_tag(ctx) == "[4f1c2a9b g3]"

    def test_tag_for_timer(self):
        assert context_tag({"trigger": "timer", "generation": 7}) == "[timer g7]"

    def test_tag_empty(self):
        assert context_tag({}) == ""


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Formatters
# ═══════════════════════════════════════════════════════════════════════════

class TestFormatters:

    def test_json_carries_context_and_engine_fields(self):
        set_request_context(request_id="req-1", route="alerts")
        record = _make_record(alert_id="flood-abc", hazard="flood", unrelated="x")

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Alert raised"
        assert entry["level"] == "INFO"
        assert entry["context"] == {"request_id": "req-1", "route": "alerts"}
        assert entry["alert_id"] == "flood-abc"
        assert entry["hazard"] == "flood"
        assert "unrelated" not in entry
        assert "service" in entry

    def test_json_exception(self):
        try:
            raise ValueError("bad reading")
        except ValueError:
            record = _make_record()
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))
        assert entry["exception"] == {"type": "ValueError", "message": "bad reading"}

    def test_pretty_shows_tag_and_fields(self):
        bind_context(trigger="timer", generation=2)
        line = PrettyFormatter().format(_make_record(alert_id="flood-abc", severity="critical"))

        assert "[timer g2]" in line
        assert "Alert raised" in line
        assert "alert_id=flood-abc" in line
        assert "severity=critical" in line


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Route tagging
# ═══════════════════════════════════════════════════════════════════════════

class TestRouteContext:

    def test_alert_action(self):
        assert route_context("/api/v1/alerts/flood-3f2a9c1b7d4e/acknowledge") == {
            "route": "alerts", "alert_id": "flood-3f2a9c1b7d4e", "action": "acknowledge",
        }

    def test_alert_listing_has_no_id(self):
        assert route_context("/api/v1/alerts/summary") == {"route": "alerts"}

    def test_api_areas(self):
        assert route_context("/api/v1/monitor/select") == {"route": "monitor"}
        assert route_context("/api/v1/assess") == {"route": "assess"}

    def test_health_and_root(self):
        assert route_context("/health/ready") == {"route": "health"}
        assert route_context("/") == {"route": "root"}


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Scheduler context
# ═══════════════════════════════════════════════════════════════════════════

class TestSchedulerContext:

    @pytest.mark.asyncio
    async def test_select_binds_trigger_and_generation(self):
        scheduler, resolver = _make_scheduler()
        set_request_context(request_id="req-1")

        await scheduler.select(BENGALURU)

        ctx = resolver.contexts[0]
        assert ctx["request_id"] == "req-1"
        assert ctx["trigger"] == "select"
        assert ctx["generation"] == 1
        assert ctx["lat"] == BENGALURU.lat
        # The caller's own context is untouched.
        assert get_request_context() == {"request_id": "req-1"}
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_timer_tick_detached_from_request(self):
        scheduler, resolver = _make_scheduler(interval=0.01)
        set_request_context(request_id="req-1")

        await scheduler.select(BENGALURU)
        await asyncio.wait_for(_wait_for_contexts(resolver, 2), 2.0)
        await scheduler.stop()

        tick = resolver.contexts[1]
        assert tick["trigger"] == "timer"
        assert "request_id" not in tick
        assert tick["generation"] == 1


async def _wait_for_contexts(resolver, count):
    while len(resolver.contexts) < count:
        await asyncio.sleep(0.005)
