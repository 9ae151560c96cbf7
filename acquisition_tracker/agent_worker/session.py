"""
Tracking session — one target token, one polling loop.

State machine:

    IDLE -> INITIALIZING -> BACKFILLING (optional) -> LIVE_TAILING -> COMPLETED
    any non-terminal state -> ERRORED (absorbing)

Backfill always scans the whole requested historical range, even after the
target count is reached, so historical counts are exact. Live tailing stops at
the target count. stop() ends the session from any state as COMPLETED
("stopped"), never as an error.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from enum import Enum
from typing import Any, Callable

from acquisition_tracker.analysis_engine import classify, decode_transaction, extract_deltas
from acquisition_tracker.analysis_engine.models import AcquisitionRecord
from acquisition_tracker.config.settings import SessionConfig
from acquisition_tracker.core.exceptions import SourceStopped, UpstreamUnavailable
from acquisition_tracker.solana_listener.block_source import RateLimitedBlockSource, plan_catch_up
from acquisition_tracker.solana_listener.models import Block
from acquisition_tracker.tracker_logging import (
    AcquisitionDetected,
    BlockProcessed,
    EventSink,
    SessionCompleted,
    bind_token,
    get_logger,
    log_event,
)

logger = get_logger(__name__)

STATUS_STARTING = "starting"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

REASON_TARGET_REACHED = "target_reached"
REASON_MARKED_COMPLETE = "marked_complete"
REASON_STOPPED = "stopped"


class SessionState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    BACKFILLING = "backfilling"
    LIVE_TAILING = "live_tailing"
    COMPLETED = "completed"
    ERRORED = "errored"


_TERMINAL = frozenset({SessionState.COMPLETED, SessionState.ERRORED})
_ACTIVE = frozenset({SessionState.BACKFILLING, SessionState.LIVE_TAILING})
_STATUS_BY_STATE = {
    SessionState.IDLE: STATUS_STARTING,
    SessionState.INITIALIZING: STATUS_STARTING,
    SessionState.BACKFILLING: STATUS_RUNNING,
    SessionState.LIVE_TAILING: STATUS_RUNNING,
    SessionState.COMPLETED: STATUS_COMPLETED,
    SessionState.ERRORED: STATUS_ERROR,
}


class TrackingSession:
    """
    Tracks acquisitions of one token across a continuous stream of blocks.

    Args:
        source: Block source owned by this session (stopped and closed when the session ends).
        config: Target count, retention cap, and progress logging interval.
        event_sink: Receives typed events; defaults to structured logging.
        on_overflow: Called with each record evicted when ``max_records_retained`` is exceeded.
    """

    def __init__(
        self,
        source: RateLimitedBlockSource,
        config: SessionConfig | None = None,
        *,
        event_sink: EventSink | None = None,
        on_overflow: Callable[[AcquisitionRecord], None] | None = None,
    ) -> None:
        self._source = source
        self._config = config or SessionConfig()
        self._event_sink = event_sink or log_event
        self._on_overflow = on_overflow
        self._state = SessionState.IDLE
        self._target_token: str | None = None
        self._start_height: int | None = None
        self._records: deque[AcquisitionRecord] = deque()
        self._total = 0
        self._complete = False
        self._reason: str | None = None
        self._error: str | None = None
        self._last_height: int | None = None
        self._log = logger
        self._reset_stats()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def source(self) -> RateLimitedBlockSource:
        return self._source

    @property
    def target_token(self) -> str | None:
        return self._target_token

    @property
    def start_height(self) -> int | None:
        return self._start_height

    @property
    def target_count(self) -> int:
        return self._config.target_count

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def record_count(self) -> int:
        """Records appended so far, including any evicted by the retention cap."""
        return self._total

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_target(self, token: str, start_height: int | None = None) -> None:
        """Reset records and completion, and prepare to track ``token``."""
        if self._state in _ACTIVE:
            raise RuntimeError("stop the running session before setting a new target")
        self._target_token = token
        self._start_height = start_height
        self._records.clear()
        self._total = 0
        self._complete = False
        self._reason = None
        self._error = None
        self._last_height = None
        self._reset_stats()
        self._log = bind_token(token)
        self._state = SessionState.INITIALIZING
        self._log.info(
            "target_token_set",
            start_slot=start_height,
            target_count=self._config.target_count,
        )

    async def start(self) -> None:
        """
        Run the session until completion, stop, or a fatal upstream error.

        Never raises for upstream failures: they move the session to ERRORED
        and are reported through status().
        """
        if self._target_token is None:
            raise RuntimeError("set_target() must be called before start()")
        if self._state in _TERMINAL:
            # stopped before the task got to run
            return
        if self._state is not SessionState.INITIALIZING:
            raise RuntimeError(f"cannot start a session in state {self._state.value}")

        source = self._source
        source.reset()
        self._stats["started_at"] = time.time()
        progress_task = None
        if self._config.progress_log_interval > 0:
            progress_task = asyncio.create_task(self._log_progress_periodically())
        try:
            current = await source.current_height()
            self._log.info("session_initialized", current_slot=current)
            backfill_from, last = plan_catch_up(current, self._start_height)
            if backfill_from is not None:
                self._state = SessionState.BACKFILLING
                await source.backfill(self._on_block, backfill_from, current)
            self._enter_live_tail()
            if self._state is SessionState.LIVE_TAILING:
                await source.tail(self._on_block, last)
        except SourceStopped:
            pass
        except UpstreamUnavailable as e:
            self._fail(str(e))
        except Exception as e:
            self._log.exception("session_failed", error=str(e))
            self._fail(str(e))
        finally:
            if progress_task is not None:
                progress_task.cancel()
            if self._state not in _TERMINAL:
                self._finish(REASON_STOPPED)
            await source.aclose()
            self._log.info("tracking_summary", **self.summary())

    def stop(self) -> None:
        """Stop from any state; the session ends COMPLETED (stopped), never ERRORED."""
        if self._state is not SessionState.ERRORED:
            self._finish(REASON_STOPPED)
        self._source.stop()

    def mark_complete(self) -> None:
        """Explicitly complete the session and stop polling."""
        if self._state is SessionState.ERRORED:
            return
        self._finish(REASON_MARKED_COMPLETE)
        self._source.stop()

    def _enter_live_tail(self) -> None:
        if self._state in _TERMINAL:
            return
        self._state = SessionState.LIVE_TAILING
        self._log.info("live_tail_entered", records=self._total)
        self._check_target()

    def _check_target(self) -> None:
        if self._state is SessionState.LIVE_TAILING and self._total >= self._config.target_count:
            self._finish(REASON_TARGET_REACHED)
            self._source.stop()

    def _finish(self, reason: str) -> None:
        if self._state in _TERMINAL:
            return
        self._state = SessionState.COMPLETED
        self._complete = True
        self._reason = reason
        self._event_sink(
            SessionCompleted(
                token=self._target_token or "",
                records=self._total,
                target=self._config.target_count,
                reason=reason,
            )
        )

    def _fail(self, message: str) -> None:
        if self._state in _TERMINAL:
            return
        self._state = SessionState.ERRORED
        self._error = message
        self._event_sink(
            SessionCompleted(
                token=self._target_token or "",
                records=self._total,
                target=self._config.target_count,
                reason="error",
                error=message,
            )
        )

    # ------------------------------------------------------------------
    # Block processing
    # ------------------------------------------------------------------

    def _accepting(self) -> bool:
        return self._state not in _TERMINAL

    def process_block(self, block: Block) -> int:
        """
        Classify every successful transaction in ``block`` and append the
        resulting records. Returns the number of records appended.
        """
        if not self._accepting() or self._target_token is None:
            return 0
        if self._last_height is not None and block.height <= self._last_height:
            self._log.warning("block_out_of_order_skipped", slot=block.height, last_slot=self._last_height)
            return 0
        self._last_height = block.height
        phase = self._state.value
        target = self._target_token
        appended = 0
        with_target = 0
        for tx in block:
            if not tx.succeeded:
                continue
            try:
                deltas = extract_deltas(tx)
                if not any(d.mint == target for d in deltas):
                    continue
                with_target += 1
                decoded = decode_transaction(tx)
                records = classify(
                    tx,
                    deltas,
                    decoded,
                    target,
                    block_height=block.height,
                    block_time=block.block_time,
                )
            except Exception as e:
                self._log.warning(
                    "transaction_classification_failed",
                    slot=block.height,
                    signature=tx.signature,
                    error=str(e),
                )
                continue
            for record in records:
                if not self._accepting():
                    self._log.debug(
                        "acquisition_skipped_target_reached",
                        slot=block.height,
                        signature=tx.signature,
                    )
                    continue
                self._append(record)
                appended += 1
                self._check_target()

        stats = self._stats
        stats["blocks_processed"] += 1
        stats["transactions_processed"] += len(block)
        stats["transactions_with_target"] += with_target
        stats["last_update_at"] = time.time()
        stats["last_slot"] = block.height
        self._event_sink(
            BlockProcessed(
                token=target,
                slot=block.height,
                transaction_count=len(block),
                acquisitions=appended,
                phase=phase,
            )
        )
        return appended

    async def _on_block(self, block: Block) -> None:
        if not self._accepting():
            self._source.stop()
            return
        self.process_block(block)

    def _append(self, record: AcquisitionRecord) -> None:
        numbered = record.model_copy(update={"sequence_number": self._total + 1})
        self._records.append(numbered)
        self._total += 1
        cap = self._config.max_records_retained
        if cap is not None:
            while len(self._records) > cap:
                evicted = self._records.popleft()
                if self._on_overflow is not None:
                    try:
                        self._on_overflow(evicted)
                    except Exception as e:
                        self._log.warning(
                            "record_overflow_callback_failed",
                            sequence_number=evicted.sequence_number,
                            error=str(e),
                        )
        self._event_sink(
            AcquisitionDetected(
                token=numbered.target_token,
                slot=numbered.block_height,
                signature=numbered.transaction_hash,
                exchange=numbered.exchange_name,
                acquirer=numbered.acquirer_address,
                amount_acquired=numbered.amount_acquired,
                unit_price=numbered.unit_price,
                confidence=numbered.confidence_level,
                sequence_number=numbered.sequence_number,
            )
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def records(self) -> list[AcquisitionRecord]:
        """Snapshot of retained records in append order."""
        return list(self._records)

    def progress(self) -> dict[str, Any]:
        current = self._total
        target = self._config.target_count
        percentage = f"{current / target * 100:.1f}" if target > 0 else "0.0"
        return {
            "current": current,
            "target": target,
            "percentage": percentage,
            "isComplete": self._complete,
        }

    def status(self) -> tuple[str, str | None]:
        """External status (starting | running | completed | error) and error detail."""
        return _STATUS_BY_STATE[self._state], self._error

    def _reset_stats(self) -> None:
        self._stats: dict[str, Any] = {
            "blocks_processed": 0,
            "transactions_processed": 0,
            "transactions_with_target": 0,
            "started_at": None,
            "last_update_at": None,
            "last_slot": None,
        }

    def stats(self) -> dict[str, Any]:
        out = dict(self._stats)
        started = out["started_at"]
        out["runtime_sec"] = round(time.time() - started, 3) if started else 0.0
        out["state"] = self._state.value
        out["progress"] = self.progress()
        return out

    def summary(self) -> dict[str, Any]:
        """Completion summary: counts, venues, acquirers, first and last record."""
        records = list(self._records)
        exchanges: list[str] = []
        for r in records:
            if r.exchange_name not in exchanges:
                exchanges.append(r.exchange_name)
        first = records[0] if records else None
        last = records[-1] if records else None
        return {
            "target_token": self._target_token,
            "state": self._state.value,
            "reason": self._reason,
            "total_records": self._total,
            "unique_exchanges": exchanges,
            "unique_acquirers": len({r.acquirer_address for r in records}),
            "first_record": first.model_dump(by_alias=True) if first else None,
            "last_record": last.model_dump(by_alias=True) if last else None,
            "first_timestamp": first.block_timestamp if first else None,
            "last_timestamp": last.block_timestamp if last else None,
        }

    async def _log_progress_periodically(self) -> None:
        interval = self._config.progress_log_interval
        while True:
            await asyncio.sleep(interval)
            stats = self.stats()
            self._log.info(
                "tracking_progress",
                records_found=stats["progress"]["current"],
                target_records=stats["progress"]["target"],
                progress_percentage=stats["progress"]["percentage"],
                runtime_minutes=round(stats["runtime_sec"] / 60, 2),
                blocks_processed=stats["blocks_processed"],
                transactions_processed=stats["transactions_processed"],
                state=stats["state"],
            )
