"""
Request rate limiting and throttle backoff for Solana RPC.

Two independent constraints gate every request:

- a sliding one-second window holding at most ``max_requests_per_second``
  request timestamps;
- a minimum spacing ``min_spacing`` between any two consecutive requests.

The caller suspends for the larger of the two remaining waits. State lives in
a ``RateLimitState`` object owned by whoever owns the endpoint pool; the
limiter itself is stateless policy, so all mutation goes through
``acquire()``, ``register_throttle()``, ``register_success()`` and
``reset_backoff()``.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from acquisition_tracker.tracker_logging import get_logger

logger = get_logger(__name__)

WINDOW_SEC = 1.0

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class RateLimitState:
    """Mutable counters for one rate-limited request stream."""

    current_delay: float
    request_times: deque[float] = field(default_factory=deque)
    last_request_at: float | None = None
    consecutive_throttles: int = 0
    total_requests: int = 0
    total_throttles: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class RateLimiter:
    """
    Sliding-window + min-spacing limiter with multiplicative throttle backoff.

    Args:
        max_requests_per_second: Window ceiling.
        min_spacing: Minimum seconds between two requests.
        base_delay: Starting value of the internal backoff delay.
        backoff_multiplier: Factor applied to the internal delay per throttle.
        max_delay: Cap for the internal delay and any computed wait.
        rotation_threshold: Consecutive throttles that call for an endpoint rotation.
        clock: Monotonic clock; injectable for tests.
    """

    def __init__(
        self,
        max_requests_per_second: int,
        min_spacing: float,
        *,
        base_delay: float,
        backoff_multiplier: float,
        max_delay: float,
        rotation_threshold: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests_per_second < 1:
            raise ValueError("max_requests_per_second must be >= 1")
        self.max_requests_per_second = max_requests_per_second
        self.min_spacing = max(0.0, min_spacing)
        self.base_delay = max(0.0, base_delay)
        self.backoff_multiplier = max(1.0, backoff_multiplier)
        self.max_delay = max(0.0, max_delay)
        self.rotation_threshold = max(1, rotation_threshold)
        self._clock = clock

    def new_state(self) -> RateLimitState:
        return RateLimitState(current_delay=self.base_delay)

    def time_until_allowed(self, state: RateLimitState) -> float:
        """Seconds until the next request may go out (0 when allowed now). Prunes the window."""
        now = self._clock()
        times = state.request_times
        while times and now - times[0] >= WINDOW_SEC:
            times.popleft()
        window_wait = 0.0
        if len(times) >= self.max_requests_per_second:
            window_wait = times[0] + WINDOW_SEC - now
        spacing_wait = 0.0
        if state.last_request_at is not None:
            spacing_wait = state.last_request_at + self.min_spacing - now
        return max(0.0, window_wait, spacing_wait)

    async def acquire(self, state: RateLimitState, sleep: Sleeper | None = None) -> None:
        """
        Suspend until a request is permitted, then record it.

        Holds the state lock while waiting so concurrent callers sharing the
        state are admitted one at a time. ``sleep`` lets the caller make the
        wait cancellable (it may raise to abort).
        """
        sleeper = sleep or asyncio.sleep
        async with state.lock:
            while True:
                wait = self.time_until_allowed(state)
                if wait <= 0:
                    break
                logger.debug(
                    "rate_limit_wait",
                    wait_sec=round(wait, 3),
                    window_count=len(state.request_times),
                )
                await sleeper(wait)
            now = self._clock()
            state.request_times.append(now)
            state.last_request_at = now
            state.total_requests += 1

    def register_throttle(self, state: RateLimitState, attempt: int) -> float:
        """
        Record a throttling response and return how long to wait before retrying.

        The internal delay grows by the backoff multiplier (capped); the wait is
        that delay scaled by 2^attempt and by 2^(consecutive throttles - 1), capped.
        """
        state.consecutive_throttles += 1
        state.total_throttles += 1
        state.current_delay = min(state.current_delay * self.backoff_multiplier, self.max_delay)
        wait = state.current_delay * (2 ** max(0, attempt)) * (2 ** (state.consecutive_throttles - 1))
        return min(wait, self.max_delay)

    def should_rotate(self, state: RateLimitState) -> bool:
        return state.consecutive_throttles >= self.rotation_threshold

    def reset_backoff(self, state: RateLimitState) -> None:
        state.consecutive_throttles = 0
        state.current_delay = self.base_delay

    def register_success(self, state: RateLimitState) -> None:
        """A request went through: throttling streak is over."""
        if state.consecutive_throttles:
            self.reset_backoff(state)

    def reset(self, state: RateLimitState) -> None:
        """Forget window history and backoff (fresh start)."""
        state.request_times.clear()
        state.last_request_at = None
        self.reset_backoff(state)
