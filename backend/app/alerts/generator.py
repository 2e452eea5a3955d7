"""
generator.py — Threshold policy that turns a RiskScore into Alerts.

═══════════════════════════════════════════════════════════════════════════
ALERT POLICY
═══════════════════════════════════════════════════════════════════════════

Rules are evaluated independently, in this order; any subset may fire.

    Hazard       Fires when                       Severity
    ──────────   ──────────────────────────────   ──────────────────────────
    Flood        flood > 70                       critical if > 85, else high
    Landslide    landslide > 60 AND lat > 25      critical if > 80, else medium
    Earthquake   earthquake > 50                  high if > 75, else medium

Thresholds are strict: a flood score of exactly 70 does not fire.

The landslide rule is region-gated on latitude as a stand-in for
"mountainous terrain".  High ground south of 25°N never raises a landslide
alert under this policy.

Every firing produces a brand-new Alert (fresh id, active, unacknowledged).
This module does not remember what it produced before; collapsing repeats
across refresh cycles is the lifecycle store's job.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from backend.app.risk.models import (
    Alert,
    Coordinates,
    HazardKind,
    RiskScore,
    Severity,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Thresholds
# ═══════════════════════════════════════════════════════════════════════════

FLOOD_ALERT_THRESHOLD = 70
FLOOD_CRITICAL_THRESHOLD = 85

LANDSLIDE_ALERT_THRESHOLD = 60
LANDSLIDE_CRITICAL_THRESHOLD = 80
LANDSLIDE_MIN_LATITUDE = 25.0

EARTHQUAKE_ALERT_THRESHOLD = 50
EARTHQUAKE_HIGH_THRESHOLD = 75


# ═══════════════════════════════════════════════════════════════════════════
# Rule Table
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AlertRule:
    """
    One hazard's firing condition and severity escalation.

    A rule fires when score > threshold (and the region gate, if any,
    passes).  Severity is `escalated` when score > escalation_threshold,
    otherwise `base`.
    """
    hazard: HazardKind
    title: str
    message_template: str
    threshold: int
    escalation_threshold: int
    base: Severity
    escalated: Severity
    region_gate: Optional[Callable[[Coordinates], bool]] = None

    def severity_for(self, score: int, coordinates: Coordinates) -> Optional[Severity]:
        """Severity if the rule fires, else None."""
        if score <= self.threshold:
            return None
        if self.region_gate is not None and not self.region_gate(coordinates):
            return None
        return self.escalated if score > self.escalation_threshold else self.base


def _northern_terrain(coordinates: Coordinates) -> bool:
    return coordinates.lat > LANDSLIDE_MIN_LATITUDE


ALERT_RULES = (
    AlertRule(
        hazard=HazardKind.FLOOD,
        title="High Flood Risk Alert",
        message_template=(
            "Flood risk is currently {score}%. Monitor water levels "
            "and prepare for potential evacuation."
        ),
        threshold=FLOOD_ALERT_THRESHOLD,
        escalation_threshold=FLOOD_CRITICAL_THRESHOLD,
        base=Severity.HIGH,
        escalated=Severity.CRITICAL,
    ),
    AlertRule(
        hazard=HazardKind.LANDSLIDE,
        title="Landslide Risk Warning",
        message_template=(
            "Landslide risk is elevated at {score}% due to weather "
            "conditions and terrain."
        ),
        threshold=LANDSLIDE_ALERT_THRESHOLD,
        escalation_threshold=LANDSLIDE_CRITICAL_THRESHOLD,
        base=Severity.MEDIUM,
        escalated=Severity.CRITICAL,
        region_gate=_northern_terrain,
    ),
    AlertRule(
        hazard=HazardKind.EARTHQUAKE,
        title="Seismic Activity Alert",
        message_template=(
            "Earthquake risk is {score}%. Recent seismic activity "
            "detected in the region."
        ),
        threshold=EARTHQUAKE_ALERT_THRESHOLD,
        escalation_threshold=EARTHQUAKE_HIGH_THRESHOLD,
        base=Severity.MEDIUM,
        escalated=Severity.HIGH,
    ),
)


def _generate_id(hazard: HazardKind) -> str:
    return f"{hazard.value}-{uuid.uuid4().hex[:12]}"


# ═══════════════════════════════════════════════════════════════════════════
# Generation
# ═══════════════════════════════════════════════════════════════════════════

def generate_alerts(
    risk_score: RiskScore,
    coordinates: Coordinates,
    *,
    location_label: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Alert]:
    """
    Derive newly-triggered alerts from a risk score.

    Parameters
    ----------
    risk_score : RiskScore
    coordinates : Coordinates
        Where the score was computed; stamped on each alert and used by
        region-gated rules.
    location_label : str | None
        Human-readable place.  Defaults to 'Lat: …, Lng: …'.
    now : datetime | None
        Generation time shared by every alert from this call.

    Returns
    -------
    list of Alert
        In rule order (flood, landslide, earthquake).  Empty if nothing
        crossed its threshold.
    """
    timestamp = now or datetime.now(timezone.utc)
    label = location_label or coordinates.label()
    components = risk_score.components()

    alerts: List[Alert] = []
    for rule in ALERT_RULES:
        score = components[rule.hazard]
        severity = rule.severity_for(score, coordinates)
        if severity is None:
            continue

        alerts.append(Alert(
            id=_generate_id(rule.hazard),
            hazard=rule.hazard,
            title=rule.title,
            message=rule.message_template.format(score=score),
            severity=severity,
            coordinates=coordinates,
            location=label,
            timestamp=timestamp,
        ))

    if alerts:
        logger.info(
            "Generated %d alert(s) at (%.4f, %.4f): %s",
            len(alerts), coordinates.lat, coordinates.lng,
            ", ".join(f"{a.hazard.value}/{a.severity.value}" for a in alerts),
            extra={"lat": coordinates.lat, "lng": coordinates.lng},
        )
    return alerts
