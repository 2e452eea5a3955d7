"""
Structured logging configuration.

Provides:
    • JSON-formatted logs for production (machine-parseable)
    • Pretty console logs for development (human-readable)
    • Log context: request fields set by the middleware, refresh fields
      (trigger, generation, lat, lng) bound by the scheduler
    • Pass-through of engine fields (alert_id, hazard, severity, overall, ...)

Usage:
    from backend.app.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Snapshot ready", extra={"lat": 28.61, "lng": 77.21})

Context lives in a ContextVar, so each asyncio task sees the values that
were current when it was created.  Scheduler refreshes run in their own
tasks and rebind the context on entry; a timer tick therefore never carries
the request_id of the request that armed it.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.app.core.config import settings

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# Extra record attributes copied into JSON output when present
EXTRA_FIELDS = (
    "lat", "lng", "alert_id", "hazard", "severity", "overall",
    "generation", "degraded", "duration_ms", "status_code", "endpoint", "route",
)

# Shown as key=value after the message in development output
PRETTY_FIELDS = ("alert_id", "hazard", "severity", "overall", "degraded")

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def set_request_context(**fields: Any) -> None:
    """Replace the log context (middleware, once per request)."""
    _log_context.set(dict(fields))


def bind_context(**fields: Any) -> None:
    """Add fields to the current log context without dropping existing ones."""
    merged = dict(_log_context.get())
    merged.update(fields)
    _log_context.set(merged)


def get_request_context() -> Dict[str, Any]:
    return _log_context.get()


def context_tag(ctx: Dict[str, Any]) -> str:
    """
    Short bracketed tag for console output.

    >>> context_tag({"request_id": "4f1c2a9b77e0", "generation": 3})
    '[4f1c2a9b g3]'
    >>> context_tag({"trigger": "timer", "generation": 3})
    '[timer g3]'
    """
    parts = []
    if ctx.get("request_id"):
        parts.append(ctx["request_id"][:8])
    elif ctx.get("trigger"):
        parts.append(ctx["trigger"])
    if "generation" in ctx:
        parts.append(f"g{ctx['generation']}")
    return f"[{' '.join(parts)}]" if parts else ""


# ── JSON Formatter (Production) ──

class JSONFormatter(logging.Formatter):
    """One JSON object per line: service, record, context, engine fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }

        ctx = get_request_context()
        if ctx:
            log_entry["context"] = dict(ctx)

        log_entry.update({
            key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)
        })

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(log_entry, default=str)


# ── Pretty Formatter (Development) ──

class PrettyFormatter(logging.Formatter):
    """Coloured console output with the context tag and key engine fields."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        tag = context_tag(get_request_context())
        fields = " ".join(
            f"{key}={getattr(record, key)}" for key in PRETTY_FIELDS if hasattr(record, key)
        )

        line = (
            f"{color}{self.formatTime(record, '%H:%M:%S')} {record.levelname:8s}{self.RESET}"
            f"{' ' + tag if tag else ''} {record.name}: {record.getMessage()}"
        )
        if fields:
            line += f"  ({fields})"
        if record.exc_info and record.exc_info[1]:
            line += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return line


# ── Setup ──

def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Install one stdout handler on the root logger.

    Defaults come from settings: LOG_LEVEL, and JSON output in production.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
    root.handlers.clear()

    if json_output is None:
        json_output = settings.is_production

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else PrettyFormatter())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
