"""
test_api.py — HTTP-level tests for the FastAPI application.

Covers:
    • Root and health probes
    • POST /api/v1/assess (live, degraded, invalid input)
    • POST /api/v1/risk/score
    • Alert listing, acknowledge, dismiss, summary, history
    • Monitor select / refresh / status / snapshot / stop, isolated from
      one-shot assessments
    • GET /api/v1/weather/forecast fallback

Providers are replaced through app.dependency_overrides; WeatherAPI.com
traffic goes through httpx.MockTransport.

Run with:
    pytest tests/test_api.py -v
"""

from __future__ import annotations

import logging

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.app.api.deps import build_services, get_services
from backend.app.ingestion.elevation_client import approximate_elevation
from backend.app.ingestion.gateway import EnvironmentReading
from backend.app.ingestion.weather_client import WeatherApiClient, fallback_weather
from backend.app.main import app
from backend.app.risk.models import Coordinates, ElevationSample, WeatherObservation


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

BENGALURU = {"latitude": 12.9716, "longitude": 77.5946}
DELHI = {"latitude": 28.6139, "longitude": 77.2090}
MUMBAI = {"latitude": 19.0760, "longitude": 72.8777}


def _wet_reading() -> EnvironmentReading:
    return EnvironmentReading(
        weather=WeatherObservation(
            temperature=27, humidity=95, wind_speed=20, pressure=1002,
            visibility=3, cloud_cover=90, precipitation=4.2, rain_chance=90,
            condition="Heavy rain",
        ),
        elevation=ElevationSample(50),
    )


def _degraded_reading() -> EnvironmentReading:
    """What EnvironmentGateway.fetch returns when every provider is down."""
    return EnvironmentReading(
        weather=fallback_weather(),
        elevation=approximate_elevation(Coordinates(12.9716, 77.5946)),
        degraded_sources=["weather", "elevation", "seismic"],
    )


class FakeGateway:

    def __init__(self, result):
        self.result = result
        self.calls = []

    async def fetch(self, coordinates):
        self.calls.append(coordinates)
        return self.result

    async def close(self):
        pass


def _weather_transport():
    """current.json answers with a place name; forecast.json is down."""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/current.json"):
            return httpx.Response(200, json={
                "location": {"name": "Bengaluru", "region": "Karnataka", "country": "India"},
                "current": {},
            })
        return httpx.Response(503, json={"error": {"message": "unavailable"}})
    return httpx.MockTransport(handler)


@pytest.fixture
def services():
    return build_services(
        gateway=FakeGateway(_wet_reading()),
        weather_client=WeatherApiClient(
            api_key="test-key",
            base_url="https://weather.test/v1",
            transport=_weather_transport(),
        ),
        interval=3600,
    )


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as c:
        yield c
        c.post("/api/v1/monitor/stop")
    app.dependency_overrides.clear()


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Root & health
# ═══════════════════════════════════════════════════════════════════════════

class TestRootAndHealth:

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert "risk-scoring" in data["modules"]
        assert "alert-lifecycle" in data["modules"]

    def test_liveness(self, client):
        resp = client.get("/health/live")
        assert resp.status_code == 200
        assert resp.json() == {"status": "alive"}

    def test_deep_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] in ("healthy", "degraded")
        names = {c["name"] for c in data["components"]}
        assert names == {
            "refresh_scheduler", "alert_store", "environment_providers", "configuration",
        }

    def test_health_reports_degraded_providers(self, client, services):
        services.gateway.result = _degraded_reading()
        client.post("/api/v1/assess", json=BENGALURU)

        data = client.get("/health").json()
        providers = next(c for c in data["components"] if c["name"] == "environment_providers")
        assert providers["status"] == "degraded"
        assert data["status"] == "degraded"

    def test_readiness(self, client):
        resp = client.get("/health/ready")
        assert resp.status_code == 200

    def test_request_id_header(self, client):
        resp = client.get("/", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"
        assert "X-Process-Time" in resp.headers


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Assessment & scoring
# ═══════════════════════════════════════════════════════════════════════════

class TestAssess:

    def test_assess_returns_snapshot(self, client):
        resp = client.post("/api/v1/assess", json=BENGALURU)
        assert resp.status_code == 200
        data = resp.json()

        assert data["location_name"] == "Bengaluru, Karnataka, India"
        assert data["risk_score"]["flood"] == 100
        assert data["risk_bands"]["flood"] == "critical"
        assert data["degraded"] is False
        assert len(data["alerts"]) == 1
        assert data["alerts"][0]["hazard"] == "flood"
        assert data["critical_alerts"] == 1

    def test_repeat_assess_keeps_alert_id(self, client):
        first = client.post("/api/v1/assess", json=BENGALURU).json()
        second = client.post("/api/v1/assess", json=BENGALURU).json()
        assert first["alerts"][0]["id"] == second["alerts"][0]["id"]

    def test_degraded_assess(self, client, services):
        services.gateway.result = _degraded_reading()
        resp = client.post("/api/v1/assess", json=BENGALURU)
        assert resp.status_code == 200
        data = resp.json()
        assert data["degraded"] is True
        assert data["degraded_sources"] == ["weather", "elevation", "seismic"]
        assert data["weather"]["humidity"] == 65

    def test_latitude_out_of_range(self, client):
        resp = client.post("/api/v1/assess", json={"latitude": 100, "longitude": 77.0})
        assert resp.status_code == 422

    def test_missing_longitude(self, client):
        resp = client.post("/api/v1/assess", json={"latitude": 12.0})
        assert resp.status_code == 422


class TestRiskScore:

    def _body(self, **weather):
        base = {"temperature": 28, "humidity": 65, "cloud_cover": 40}
        base.update(weather)
        return {
            "location": {"latitude": 28.6139, "longitude": 77.2090},
            "weather": base,
            "elevation": 200,
        }

    def test_reference_conditions(self, client, services):
        resp = client.post("/api/v1/risk/score", json=self._body())
        assert resp.status_code == 200
        data = resp.json()
        assert data["scores"]["flood"] == 52
        assert data["scores"]["heavy_rain"] == 55
        assert data["bands"]["flood"] == "medium"
        assert data["location"] == {"lat": 28.6139, "lng": 77.209}
        assert isinstance(data["time_bucket"], int)
        # Pure scoring: no fetch, no alerts
        assert services.gateway.calls == []
        assert len(services.store) == 0

    def test_humidity_out_of_range(self, client):
        resp = client.post("/api/v1/risk/score", json=self._body(humidity=120))
        assert resp.status_code == 422

    def test_nan_temperature_uses_error_envelope(self, client):
        body = (
            '{"location": {"latitude": 28.6, "longitude": 77.2},'
            ' "weather": {"temperature": NaN, "humidity": 65},'
            ' "elevation": 200}'
        )
        resp = client.post(
            "/api/v1/risk/score",
            content=body,
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "INVALID_INPUT"
        assert error["details"]["field"] == "temperature"


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Alerts
# ═══════════════════════════════════════════════════════════════════════════

class TestAlerts:

    def _raise_flood_alert(self, client):
        snapshot = client.post("/api/v1/assess", json=BENGALURU).json()
        return snapshot["alerts"][0]["id"]

    def test_list_active(self, client):
        self._raise_flood_alert(client)
        data = client.get("/api/v1/alerts").json()
        assert data["count"] == 1
        assert data["critical_count"] == 1
        assert data["alerts"][0]["severity"] == "critical"

    def test_severity_filter(self, client):
        self._raise_flood_alert(client)
        assert client.get("/api/v1/alerts", params={"severity": "high"}).json()["count"] == 0
        assert client.get("/api/v1/alerts", params={"severity": "critical"}).json()["count"] == 1

    def test_invalid_severity(self, client):
        resp = client.get("/api/v1/alerts", params={"severity": "apocalyptic"})
        assert resp.status_code == 422

    def test_acknowledge(self, client):
        alert_id = self._raise_flood_alert(client)
        resp = client.post(f"/api/v1/alerts/{alert_id}/acknowledge")
        assert resp.status_code == 200
        assert resp.json() == {"alert_id": alert_id, "action": "acknowledge", "updated": True}

        assert client.get("/api/v1/alerts").json()["count"] == 0
        # Still hidden after the next refresh
        snapshot = client.post("/api/v1/assess", json=BENGALURU).json()
        assert snapshot["alerts"] == []

    def test_dismiss(self, client):
        alert_id = self._raise_flood_alert(client)
        resp = client.post(f"/api/v1/alerts/{alert_id}/dismiss")
        assert resp.json()["updated"] is True

        resp = client.post(f"/api/v1/alerts/{alert_id}/dismiss")
        assert resp.json()["updated"] is False

    def test_alert_action_is_tagged_in_request_log(self, client, caplog):
        alert_id = self._raise_flood_alert(client)
        with caplog.at_level(logging.INFO, logger="backend.app.core.middleware"):
            client.post(f"/api/v1/alerts/{alert_id}/dismiss")

        records = [r for r in caplog.records if getattr(r, "action", None) == "dismiss"]
        assert len(records) == 1
        assert records[0].alert_id == alert_id
        assert records[0].route == "alerts"
        assert records[0].status_code == 200

    def test_unknown_id_is_not_an_error(self, client):
        for action in ("acknowledge", "dismiss"):
            resp = client.post(f"/api/v1/alerts/does-not-exist/{action}")
            assert resp.status_code == 200
            assert resp.json()["updated"] is False

    def test_summary_and_history(self, client):
        alert_id = self._raise_flood_alert(client)
        client.post(f"/api/v1/alerts/{alert_id}/dismiss")

        summary = client.get("/api/v1/alerts/summary").json()
        assert summary["total"] == 1
        assert summary["dismissed"] == 1
        assert summary["active"] == 0

        history = client.get("/api/v1/alerts/history").json()
        assert history["count"] == 1
        assert history["alerts"][0]["is_active"] is False


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Monitor
# ═══════════════════════════════════════════════════════════════════════════

class TestMonitor:

    def test_snapshot_before_any_assessment(self, client):
        resp = client.get("/api/v1/monitor/snapshot")
        assert resp.status_code == 404

    def test_select_and_status(self, client):
        resp = client.post("/api/v1/monitor/select", json=BENGALURU)
        assert resp.status_code == 200
        assert resp.json()["coordinates"] == {"lat": 12.9716, "lng": 77.5946}

        status = client.get("/api/v1/monitor/status").json()
        assert status["state"] == "idle"
        assert status["timer_armed"] is True
        assert status["refresh_count"] == 1
        assert status["interval_seconds"] == 3600

        snapshot = client.get("/api/v1/monitor/snapshot").json()
        assert snapshot["location_name"] == "Bengaluru, Karnataka, India"

    def test_refresh_selected(self, client, services):
        client.post("/api/v1/monitor/select", json=BENGALURU)
        resp = client.post("/api/v1/monitor/refresh")
        assert resp.status_code == 200
        assert len(services.gateway.calls) == 2
        assert client.get("/api/v1/monitor/status").json()["refresh_count"] == 2

    def test_refresh_without_selection_uses_default(self, client):
        resp = client.post("/api/v1/monitor/refresh")
        assert resp.status_code == 200
        assert resp.json()["coordinates"] == {"lat": 28.6139, "lng": 77.209}

    def test_assess_elsewhere_keeps_monitored_snapshot(self, client, services):
        received = []
        services.pipeline.subscribe(received.append)

        client.post("/api/v1/monitor/select", json=DELHI)
        resp = client.post("/api/v1/assess", json=MUMBAI)
        assert resp.json()["coordinates"] == {"lat": 19.076, "lng": 72.8777}

        status = client.get("/api/v1/monitor/status").json()
        snapshot = client.get("/api/v1/monitor/snapshot").json()
        assert status["coordinates"] == {"lat": 28.6139, "lng": 77.209}
        assert snapshot["coordinates"] == status["coordinates"]
        assert [s.coordinates.to_dict() for s in received] == [status["coordinates"]]

    def test_stop(self, client):
        client.post("/api/v1/monitor/select", json=BENGALURU)
        status = client.post("/api/v1/monitor/stop").json()
        assert status["timer_armed"] is False

    def test_select_invalid(self, client):
        resp = client.post("/api/v1/monitor/select", json={"latitude": 12.0, "longitude": 200})
        assert resp.status_code == 422


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: Weather outlook
# ═══════════════════════════════════════════════════════════════════════════

class TestForecast:

    def test_fallback_outlook(self, client):
        resp = client.get(
            "/api/v1/weather/forecast",
            params={"latitude": 12.9716, "longitude": 77.5946, "days": 2},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["days"] == 2
        assert [d["condition"] for d in data["forecast"]] == ["Sunny", "Partly Cloudy"]

    def test_days_out_of_range(self, client):
        resp = client.get(
            "/api/v1/weather/forecast",
            params={"latitude": 12.9716, "longitude": 77.5946, "days": 7},
        )
        assert resp.status_code == 422
