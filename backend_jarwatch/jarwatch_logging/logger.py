"""
Structured logging for the jar monitor.

Every record carries event_type (the first positional argument), level,
ISO timestamp and the emitting module; monitor code adds jar_address, token,
transaction_hash and amounts as keyword fields.

Token amounts are wei-scale integers that overflow a JSON double, so integers
outside the safe range are rendered as strings. Fields that could carry
credentials (private_key, anything ending in _key or _secret) are redacted.

Configuration comes from JARWATCH_LOG_LEVEL / JARWATCH_LOG_FORMAT, falling back
to LOG_LEVEL / LOG_FORMAT. Format "json" (default) or "console".

Imports nothing from backend_jarwatch so any module can import it first.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

MAX_SAFE_JSON_INT = 2**53 - 1
REDACTED = "***"
_SECRET_SUFFIXES = ("_key", "_secret")


def _env(name: str, default: str) -> str:
    return (os.getenv(f"JARWATCH_{name}") or os.getenv(name) or default).strip()


def _level_from_env() -> int:
    return getattr(logging, _env("LOG_LEVEL", "INFO").upper(), logging.INFO)


def _add_timestamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's 'event' becomes event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def _safe_ints(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_SAFE_JSON_INT:
            event_dict[key] = str(value)
    return event_dict


def _redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in event_dict:
        if key == "private_key" or key.endswith(_SECRET_SUFFIXES):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: int | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog for the process. Called once on import with env defaults."""
    fmt = (fmt or _env("LOG_FORMAT", "json")).lower()
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _event_type,
        _redact_secrets,
        _safe_ints,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty(), event_key="event_type"))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_from_env() if level is None else level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Logger bound to the module name.

        logger = get_logger(__name__)
        logger.info("transfer_detected", jar_address=jar, token=token, amount=amount)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_jar(jar_address: str) -> structlog.BoundLogger:
    """Logger with jar_address bound to every record."""
    return get_logger("backend_jarwatch").bind(jar_address=jar_address)


def short_hash(value: str | None, width: int = 10) -> str:
    """Shorten a hash or address for log fields: '0x12345678...'."""
    if not value:
        return ""
    return value[:width] + "..." if len(value) > width else value
