"""
RPC endpoint pool with atomic rotation.

The pool owns the endpoint list, the rotation index, and the rate-limit
state for requests sent through it. Sharing one pool between block sources
shares the request ceiling too; two sources throttled at the same moment
rotate at most once, because rotation only happens if the caller's observed
index is still current.
"""

from __future__ import annotations

import asyncio

from acquisition_tracker.config.env import mask_url
from acquisition_tracker.solana_listener.rate_limiter import RateLimiter, RateLimitState, Sleeper
from acquisition_tracker.tracker_logging import get_logger

logger = get_logger(__name__)


class EndpointPool:
    """Equivalent RPC endpoints; the current one is used until throttling forces rotation."""

    def __init__(self, endpoints: list[str], limiter: RateLimiter) -> None:
        urls = [e.strip().rstrip("/") for e in endpoints if e and e.strip()]
        if not urls:
            raise ValueError("endpoints must be non-empty")
        self._endpoints = urls
        self._index = 0
        self._rotation_lock = asyncio.Lock()
        self.limiter = limiter
        self.state: RateLimitState = limiter.new_state()
        self.rotations = 0

    def __len__(self) -> int:
        return len(self._endpoints)

    @property
    def endpoints(self) -> list[str]:
        return list(self._endpoints)

    @property
    def index(self) -> int:
        return self._index

    def current(self) -> tuple[int, str]:
        """Return (index, url) of the endpoint in use."""
        return self._index, self._endpoints[self._index]

    async def acquire(self, sleep: Sleeper | None = None) -> None:
        """Wait for permission to send one request through this pool."""
        await self.limiter.acquire(self.state, sleep)

    async def rotate(self, observed_index: int) -> tuple[int, str]:
        """
        Move to the next endpoint if ``observed_index`` is still current, and
        reset backoff state. Returns the (index, url) now in use either way.
        """
        async with self._rotation_lock:
            if self._index == observed_index:
                previous = self._endpoints[self._index]
                self._index = (self._index + 1) % len(self._endpoints)
                self.rotations += 1
                self.limiter.reset_backoff(self.state)
                logger.warning(
                    "rpc_endpoint_rotated",
                    from_endpoint=mask_url(previous),
                    to_endpoint=mask_url(self._endpoints[self._index]),
                    rotations=self.rotations,
                )
            return self.current()

    def reset(self) -> None:
        """Clear rate-limit counters; the rotation index is kept."""
        self.limiter.reset(self.state)
