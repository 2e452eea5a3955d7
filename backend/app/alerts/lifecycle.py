"""
lifecycle.py — In-memory alert store with deduplication and user actions.

The store is the single owner of alert lifecycle state.  Alert generation
is stateless and runs on every refresh, so without this layer the same
ongoing flood would produce a new alert every 30 seconds.

═══════════════════════════════════════════════════════════════════════════
CONDITION SIGNATURE
═══════════════════════════════════════════════════════════════════════════

Incoming alerts are collapsed by a condition signature:

    (hazard, coordinate bucket, severity)

The coordinate bucket is (lat, lng) rounded to ALERT_BUCKET_PRECISION
decimals (2 by default, roughly 1 km).  Each signature is bound to at most
one stored alert at a time.

    Bound alert state            Incoming alert with same signature
    ──────────────────────────   ──────────────────────────────────
    active, unacknowledged       dropped (already visible)
    active, acknowledged         dropped while the condition persists
    dismissed                    dropped while the condition persists
    (no binding)                 inserted and bound

A merge scoped to a coordinate releases the bindings of handled alerts
(acknowledged or dismissed) in that coordinate's bucket whose signature
did not fire this time.  The condition has cleared, so when it fires again
the result is a new alert with a new id that needs attention again.  The
handled alert keeps its flags; a dismissed alert is never reactivated.
An unhandled alert keeps its binding until the user acts on it, so a
flapping condition cannot stack duplicates.

═══════════════════════════════════════════════════════════════════════════
RETENTION
═══════════════════════════════════════════════════════════════════════════

History is capped at ALERT_HISTORY_LIMIT.  When a merge leaves more alerts
than that, the oldest dismissed alerts that no longer hold a binding are
pruned.  Active and acknowledged alerts are never pruned, so the cap can
be exceeded while they make up the excess.

═══════════════════════════════════════════════════════════════════════════
USER ACTIONS
═══════════════════════════════════════════════════════════════════════════

    acknowledge(id)  → acknowledged=True, stays active, leaves the
                       actionable view; never reset by a merge
    dismiss(id)      → is_active=False, terminal

Unknown ids are a no-op, never an error: the UI may race a refresh.

All mutations hold a re-entrant lock.  Reads hand out copies so callers
cannot mutate stored alerts behind the store's back.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from backend.app.core.config import settings
from backend.app.risk.models import Alert, Coordinates, HazardKind, Severity

logger = logging.getLogger(__name__)

Signature = Tuple[HazardKind, Tuple[float, float], Severity]


class AlertLifecycleStore:
    """
    Insertion-ordered alert history plus signature bindings.

    Parameters
    ----------
    bucket_precision : int | None
        Decimal places used to bucket coordinates in the signature.
        Defaults to settings.ALERT_BUCKET_PRECISION.
    history_limit : int | None
        Retention cap for dismissed alerts.  Defaults to
        settings.ALERT_HISTORY_LIMIT.

    Examples
    --------
    >>> store = AlertLifecycleStore()
    >>> added = store.merge(generate_alerts(score, coords), coords)
    >>> store.acknowledge(added[0].id)
    True
    >>> store.acknowledge("no-such-id")
    False
    """

    def __init__(
        self,
        bucket_precision: Optional[int] = None,
        history_limit: Optional[int] = None,
    ):
        self._precision = (
            settings.ALERT_BUCKET_PRECISION
            if bucket_precision is None else bucket_precision
        )
        self._history_limit = (
            settings.ALERT_HISTORY_LIMIT if history_limit is None else history_limit
        )
        self._alerts: Dict[str, Alert] = {}
        self._bindings: Dict[Signature, str] = {}
        self._lock = threading.RLock()

    def signature(self, alert: Alert) -> Signature:
        return (alert.hazard, alert.coordinates.bucket(self._precision), alert.severity)

    # ── Merge ─────────────────────────────────────────────────────────

    def merge(
        self,
        new_alerts: Iterable[Alert],
        coordinates: Optional[Coordinates] = None,
    ) -> List[Alert]:
        """
        Fold freshly generated alerts into the store.

        Parameters
        ----------
        new_alerts : iterable of Alert
            Output of one generate_alerts() call.
        coordinates : Coordinates | None
            The coordinate these alerts were evaluated for.  When given,
            handled signatures in its bucket that did not fire this time
            are released.

        Returns
        -------
        list of Alert
            Copies of the alerts that were actually inserted.
        """
        added: List[Alert] = []
        with self._lock:
            fired: Set[Signature] = set()
            for alert in new_alerts:
                sig = self.signature(alert)
                fired.add(sig)

                if sig in self._bindings or alert.id in self._alerts:
                    logger.debug(
                        "Alert suppressed: %s already bound to %s",
                        alert.hazard.value, self._bindings.get(sig, alert.id),
                        extra={"alert_id": alert.id, "hazard": alert.hazard.value},
                    )
                    continue

                stored = alert.copy()
                self._alerts[stored.id] = stored
                self._bindings[sig] = stored.id
                added.append(stored.copy())

                logger.info(
                    "Alert raised: %s [%s] at %s",
                    stored.title, stored.severity.value, stored.location,
                    extra={
                        "alert_id": stored.id,
                        "hazard": stored.hazard.value,
                        "severity": stored.severity.value,
                    },
                )

            if coordinates is not None:
                self._release_cleared(coordinates.bucket(self._precision), fired)
            self._prune()

        return added

    def _release_cleared(self, bucket: Tuple[float, float], fired: Set[Signature]) -> None:
        released = [
            sig for sig, alert_id in self._bindings.items()
            if sig[1] == bucket
            and sig not in fired
            and not self._alerts[alert_id].is_actionable
        ]
        for sig in released:
            del self._bindings[sig]
            logger.debug("Condition cleared, releasing %s/%s", sig[0].value, sig[2].value)

    def _prune(self) -> None:
        excess = len(self._alerts) - self._history_limit
        if excess <= 0:
            return
        bound = set(self._bindings.values())
        expired = [
            alert_id for alert_id, alert in self._alerts.items()
            if not alert.is_active and alert_id not in bound
        ][:excess]
        for alert_id in expired:
            del self._alerts[alert_id]
        if expired:
            logger.debug("Pruned %d dismissed alert(s) from history", len(expired))

    # ── User actions ──────────────────────────────────────────────────

    def acknowledge(self, alert_id: str) -> bool:
        """Mark an active alert as seen.  Returns True if state changed."""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.acknowledged or not alert.is_active:
                logger.debug("Acknowledge ignored for %s", alert_id)
                return False
            alert.acknowledged = True

        logger.info("Alert acknowledged: %s", alert_id, extra={"alert_id": alert_id})
        return True

    def dismiss(self, alert_id: str) -> bool:
        """Deactivate an alert for good.  Returns True if state changed."""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or not alert.is_active:
                logger.debug("Dismiss ignored for %s", alert_id)
                return False
            alert.is_active = False

        logger.info("Alert dismissed: %s", alert_id, extra={"alert_id": alert_id})
        return True

    # ── Reads ─────────────────────────────────────────────────────────

    def active_alerts(self) -> List[Alert]:
        """
        Active, unacknowledged alerts, newest first.

        Equal timestamps keep insertion order (sorted() is stable even with
        reverse=True).
        """
        with self._lock:
            actionable = [a.copy() for a in self._alerts.values() if a.is_actionable]
        return sorted(actionable, key=lambda a: a.timestamp, reverse=True)

    def critical_count(self) -> int:
        return sum(1 for a in self.active_alerts() if a.severity == Severity.CRITICAL)

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            alert = self._alerts.get(alert_id)
            return alert.copy() if alert else None

    def all_alerts(self) -> List[Alert]:
        """Full history in insertion order, including dismissed alerts."""
        with self._lock:
            return [a.copy() for a in self._alerts.values()]

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            alerts = list(self._alerts.values())

        actionable = [a for a in alerts if a.is_actionable]
        by_severity = Counter(a.severity.value for a in actionable)
        return {
            "total": len(alerts),
            "active": len(actionable),
            "acknowledged": sum(1 for a in alerts if a.is_active and a.acknowledged),
            "dismissed": sum(1 for a in alerts if not a.is_active),
            "critical": by_severity.get(Severity.CRITICAL.value, 0),
            "by_severity": {s.value: by_severity.get(s.value, 0) for s in Severity},
        }

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()
            self._bindings.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)
