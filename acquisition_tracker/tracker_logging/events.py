"""
Typed pipeline events.

A closed set of event types emitted by the block source and tracking session.
Each event is a frozen dataclass with a fixed ``event_type``, a log ``level``
and a ``to_dict()`` payload; consumers receive them through an ``EventSink``
callable. The default sink hands the event object to the structured logger,
which expands it (tracker_logging.logger.render_tracker_event).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, Union

from acquisition_tracker.tracker_logging.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BlockProcessed:
    """A block was fetched and all of its successful transactions classified."""

    token: str
    slot: int
    transaction_count: int
    acquisitions: int
    phase: str

    event_type = "block_processed"

    @property
    def level(self) -> str:
        return "info" if self.acquisitions else "debug"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AcquisitionDetected:
    """A new acquisition record was appended to a session."""

    token: str
    slot: int
    signature: str
    exchange: str
    acquirer: str
    amount_acquired: str
    unit_price: str
    confidence: str
    sequence_number: int

    event_type = "acquisition_detected"
    level = "info"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ThrottleBackoff:
    """The upstream node throttled a request; the source is backing off."""

    endpoint: str
    method: str
    consecutive: int
    wait_sec: float
    rotated_to: str | None = None

    event_type = "throttle_backoff"
    level = "warning"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SessionCompleted:
    """A tracking session reached a terminal state."""

    token: str
    records: int
    target: int
    reason: str
    error: str | None = None

    event_type = "session_completed"

    @property
    def level(self) -> str:
        return "error" if self.error else "info"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


TrackerEvent = Union[BlockProcessed, AcquisitionDetected, ThrottleBackoff, SessionCompleted]
EventSink = Callable[[TrackerEvent], None]


def log_event(event: TrackerEvent) -> None:
    """Default sink: one structured log line per event, at the event's level."""
    getattr(logger, event.level)(event)
