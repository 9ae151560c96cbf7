"""
Structured logging for the acquisition tracker.

JSON logs with timestamp, event_type, token, slot. Use get_logger() in all
modules; typed pipeline events live in tracker_logging.events.
"""

from acquisition_tracker.tracker_logging.events import (
    AcquisitionDetected,
    BlockProcessed,
    EventSink,
    SessionCompleted,
    ThrottleBackoff,
    TrackerEvent,
    log_event,
)
from acquisition_tracker.tracker_logging.logger import bind_token, get_logger

__all__ = [
    "AcquisitionDetected",
    "BlockProcessed",
    "EventSink",
    "SessionCompleted",
    "ThrottleBackoff",
    "TrackerEvent",
    "bind_token",
    "get_logger",
    "log_event",
]
