"""
Session manager — start, query, and stop tracking sessions by handle.

Each session owns its block source and runs as an asyncio task. Sessions may
share one endpoint pool (shared_pool=True) so that several tracked tokens stay
under a single request ceiling.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from acquisition_tracker.agent_worker.session import TrackingSession
from acquisition_tracker.analysis_engine.models import AcquisitionRecord
from acquisition_tracker.config.settings import SessionConfig, SourceConfig
from acquisition_tracker.core.exceptions import InvalidTokenIdentifier, SessionNotFound
from acquisition_tracker.core.validation import is_valid_token_mint
from acquisition_tracker.solana_listener.block_source import RateLimitedBlockSource, build_pool
from acquisition_tracker.tracker_logging import EventSink, get_logger

logger = get_logger(__name__)

DEFAULT_STOP_TIMEOUT_SEC = 10.0

SourceFactory = Callable[[SourceConfig], RateLimitedBlockSource]


@dataclass
class _Entry:
    handle: str
    session: TrackingSession
    task: asyncio.Task
    created_at: float = field(default_factory=time.time)


class SessionManager:
    """
    Registry of running and finished tracking sessions.

    Args:
        source_config: Block source settings used for every new session.
        session_config: Default session settings (target count, retention).
        shared_pool: Share one endpoint pool and rate limit across sessions.
        transport: Optional httpx transport for every source (tests use MockTransport).
        event_sink: Receives typed events from every session and source.
        source_factory: Overrides how block sources are built.
    """

    def __init__(
        self,
        source_config: SourceConfig | None = None,
        session_config: SessionConfig | None = None,
        *,
        shared_pool: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
        event_sink: EventSink | None = None,
        source_factory: SourceFactory | None = None,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT_SEC,
    ) -> None:
        self._source_config = source_config or SourceConfig()
        self._session_config = session_config or SessionConfig()
        self._pool = build_pool(self._source_config) if shared_pool else None
        self._transport = transport
        self._event_sink = event_sink
        self._source_factory = source_factory
        self._stop_timeout = stop_timeout
        self._sessions: dict[str, _Entry] = {}

    def _build_source(self) -> RateLimitedBlockSource:
        if self._source_factory is not None:
            return self._source_factory(self._source_config)
        return RateLimitedBlockSource(
            self._source_config,
            pool=self._pool,
            transport=self._transport,
            event_sink=self._event_sink,
        )

    def _get(self, handle: str) -> _Entry:
        entry = self._sessions.get(handle)
        if entry is None:
            raise SessionNotFound(handle)
        return entry

    async def start_tracking(
        self,
        token: str,
        start_height: int | None = None,
        *,
        target_count: int | None = None,
    ) -> str:
        """
        Validate ``token``, start a session in the background, and return its handle.
        Raises InvalidTokenIdentifier before any network call.
        """
        if not is_valid_token_mint(token):
            raise InvalidTokenIdentifier(token)
        if start_height is not None and (isinstance(start_height, bool) or int(start_height) < 0):
            raise ValueError(f"start_height must be a non-negative integer: {start_height!r}")

        config = self._session_config
        if target_count is not None:
            config = SessionConfig(
                target_count=target_count,
                max_records_retained=config.max_records_retained,
                progress_log_interval=config.progress_log_interval,
            )
        session = TrackingSession(self._build_source(), config, event_sink=self._event_sink)
        session.set_target(token, None if start_height is None else int(start_height))

        handle = uuid.uuid4().hex
        task = asyncio.create_task(session.start(), name=f"tracking-{handle[:8]}")
        task.add_done_callback(lambda t: self._on_task_done(handle, t))
        self._sessions[handle] = _Entry(handle=handle, session=session, task=task)
        logger.info(
            "tracking_started",
            session_id=handle,
            token=token,
            start_slot=start_height,
            target_count=config.target_count,
        )
        return handle

    def _on_task_done(self, handle: str, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.info("tracking_task_cancelled", session_id=handle)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("tracking_task_failed", session_id=handle, error=str(exc))

    def get_progress(self, handle: str) -> dict[str, Any]:
        return self._get(handle).session.progress()

    def get_records(self, handle: str) -> list[AcquisitionRecord]:
        return self._get(handle).session.records()

    def session_status(self, handle: str) -> tuple[str, str | None]:
        """(status, error) where status is starting | running | completed | error."""
        return self._get(handle).session.status()

    def get_session(self, handle: str) -> TrackingSession:
        return self._get(handle).session

    async def stop_tracking(self, handle: str) -> None:
        """Stop the session and wait for its task to release the block source."""
        entry = self._get(handle)
        entry.session.stop()
        try:
            await asyncio.wait_for(asyncio.shield(entry.task), timeout=self._stop_timeout)
        except asyncio.TimeoutError:
            logger.warning("tracking_stop_timeout", session_id=handle, timeout_sec=self._stop_timeout)
            entry.task.cancel()
        logger.info("tracking_stopped", session_id=handle, progress=entry.session.progress())

    def list_sessions(self) -> list[dict[str, Any]]:
        out = []
        for handle, entry in self._sessions.items():
            status, error = entry.session.status()
            out.append(
                {
                    "session_id": handle,
                    "token": entry.session.target_token,
                    "start_height": entry.session.start_height,
                    "status": status,
                    "error": error,
                    "progress": entry.session.progress(),
                    "created_at": int(entry.created_at),
                }
            )
        return out

    async def aclose(self) -> None:
        """Stop every session that is still running."""
        for handle, entry in list(self._sessions.items()):
            if not entry.task.done():
                await self.stop_tracking(handle)
