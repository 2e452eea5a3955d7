"""
Request middleware — correlation IDs, route tagging, one log line per call.

Every request gets:
    • X-Request-ID (echoed from the client or generated) and X-Process-Time
    • a log context: request_id, client_ip, method, endpoint and route, the
      API area the path belongs to (assess, risk, alerts, monitor, weather,
      health)
    • for alert actions (/api/v1/alerts/{id}/acknowledge|dismiss) the
      alert_id and action as well, so the store's own log lines for that
      alert share the request's context

Docs, favicon and liveness probes are not logged.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Any, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/"

_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health/live")

_ALERT_ACTION = re.compile(r"^/api/v1/alerts/(?P<alert_id>[^/]+)/(?P<action>acknowledge|dismiss)$")


def route_context(path: str) -> Dict[str, Any]:
    """
    Domain fields for a request path.

    >>> route_context("/api/v1/alerts/flood-3f2a9c1b7d4e/dismiss")
    {'route': 'alerts', 'alert_id': 'flood-3f2a9c1b7d4e', 'action': 'dismiss'}
    >>> route_context("/health/ready")
    {'route': 'health'}
    """
    if path.startswith(API_PREFIX):
        fields: Dict[str, Any] = {"route": path[len(API_PREFIX):].split("/", 1)[0]}
        match = _ALERT_ACTION.match(path)
        if match:
            fields.update(match.groupdict())
        return fields
    if path.startswith("/health"):
        return {"route": "health"}
    return {"route": "root" if path == "/" else "other"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Set the log context for the request and log its outcome."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path
        fields = route_context(path)

        set_request_context(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            endpoint=path,
            **fields,
        )

        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                self._log(request.method, path, 500, start, client_ip, fields)
                raise

            duration_ms = self._log(
                request.method, path, response.status_code, start, client_ip, fields,
            )
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"
            return response
        finally:
            set_request_context()

    @staticmethod
    def _log(method: str, path: str, status_code: int, start: float,
             client_ip: str, fields: Dict[str, Any]) -> float:
        duration_ms = (time.perf_counter() - start) * 1000
        if path.startswith(_QUIET_PREFIXES):
            return duration_ms

        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        action = f" ({fields['action']} {fields['alert_id']})" if "action" in fields else ""
        logger.log(
            level,
            "%s %s → %d (%.1fms) [%s]%s",
            method, path, status_code, duration_ms, client_ip, action,
            extra={
                "duration_ms": duration_ms,
                "status_code": status_code,
                "endpoint": path,
                **fields,
            },
        )
        return duration_ms
