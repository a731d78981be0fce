"""
structlog setup for bank participants.

Every record is a JSON line on stderr (stdout is reserved for the reveal
report) with event_type, level, timestamp and, inside a participant run, the
bound bank_id. Salted identities are pseudonymous but still linkable, so the
"identity" field is cut down to its low 32 bits before rendering.

Environment:
- LOG_LEVEL: minimum level (default INFO)
- LOG_FORMAT: "json" (default) or "console" for local runs
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

IDENTITY_FIELD = "identity"


def short_identity(identity: int) -> str:
    """Low 32 bits of an identity as hex, for log lines and console output."""
    return f"{identity & 0xFFFFFFFF:08x}"


def _stamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def _truncate_identity(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    value = event_dict.get(IDENTITY_FIELD)
    if isinstance(value, int) and not isinstance(value, bool):
        event_dict[IDENTITY_FIELD] = short_identity(value)
    return event_dict


def configure_structlog() -> None:
    renderer: Any
    if LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _stamp,
            _event_type,
            _truncate_identity,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """Module logger; the module name is bound as "logger"."""
    return structlog.get_logger(name).bind(logger=name)


def bind_bank(bank_id: int) -> structlog.BoundLogger:
    """Logger for one participant run, with bank_id on every line."""
    return get_logger("backend_secagg.participant").bind(bank_id=bank_id)
