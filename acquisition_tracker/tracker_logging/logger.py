"""
Structured logging for the tracker: one JSON object per line on stdout.

Every line carries ``event_type``, ``level`` and an ISO ``timestamp`` plus the
keyword fields of the call. Pipeline events (see tracker_logging.events) can be
passed as the log message itself; ``render_tracker_event`` expands them into
their type and payload so a sink never has to unpack them by hand:

    logger.info(BlockProcessed(token=..., slot=312000000, ...))
    -> {"event_type": "block_processed", "slot": 312000000, ..., "level": "info"}

LOG_LEVEL and LOG_FORMAT (json | console) are read when structlog is
configured. Only structlog and stdlib here; no acquisition_tracker imports.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "json"


def render_tracker_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Replace an event object in the message slot with its type and fields."""
    event = event_dict.get("event")
    event_type = getattr(event, "event_type", None)
    to_dict = getattr(event, "to_dict", None)
    if not isinstance(event_type, str) or not callable(to_dict):
        return event_dict
    event_dict["event"] = event_type
    # Keywords given at the call site win over the event's own fields
    for key, value in to_dict().items():
        event_dict.setdefault(key, value)
    return event_dict


def _level_value(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL).strip().upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """
    (Re)configure structlog. ``level`` and ``fmt`` override LOG_LEVEL and
    LOG_FORMAT; unknown levels fall back to INFO.
    """
    fmt = (fmt or os.getenv("LOG_FORMAT") or DEFAULT_FORMAT).strip().lower()
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.format_exc_info,
        render_tracker_event,
    ]
    if fmt == "json":
        processors.append(structlog.processors.EventRenamer("event_type"))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_value(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # module-level loggers must pick up a later reconfigure
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> Any:
    """
    Structured logger tagged with the module name under ``logger_name``.
    Resolved lazily on each call, so it follows any later configure_structlog().
    """
    return structlog.get_logger(name, logger_name=name)


def bind_token(token: str) -> Any:
    """Logger with the tracked token bound to all subsequent log calls."""
    return get_logger("acquisition_tracker").bind(token=token)
