"""
Rate-limited Solana block source — slot polling with backoff and failover.

Responsibilities:
- Query the current slot (getSlot) and full blocks (getBlock) over JSON-RPC.
- Enforce the request ceiling and spacing through the endpoint pool's limiter.
- Back off exponentially on throttling; rotate endpoints after repeated throttles.
- Retry other upstream errors a bounded number of times with doubling delay.
- Walk a historical range in batches (backfill), then tail new slots (live).
- Observe a stop signal during every wait so shutdown is prompt.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import httpx

from acquisition_tracker.config.env import mask_url
from acquisition_tracker.config.settings import SourceConfig
from acquisition_tracker.core.exceptions import (
    BlockUnavailable,
    RpcError,
    SourceStopped,
    Throttled,
    UpstreamUnavailable,
)
from acquisition_tracker.solana_listener.endpoints import EndpointPool
from acquisition_tracker.solana_listener.models import Block
from acquisition_tracker.solana_listener.rate_limiter import RateLimiter
from acquisition_tracker.tracker_logging import EventSink, ThrottleBackoff, get_logger, log_event

logger = get_logger(__name__)

# getBlock errors meaning the slot was skipped, pruned, or is not yet/no longer available
BLOCK_UNAVAILABLE_CODES = frozenset({-32001, -32004, -32007, -32009})
THROTTLE_CODES = frozenset({429, -32429})

BlockCallback = Callable[[Block], Awaitable[None] | None]


def build_pool(config: SourceConfig) -> EndpointPool:
    """Endpoint pool with a limiter configured from ``config``."""
    limiter = RateLimiter(
        config.max_requests_per_second,
        config.request_delay,
        base_delay=config.request_delay,
        backoff_multiplier=config.rate_limit_backoff_multiplier,
        max_delay=config.max_rate_limit_delay,
        rotation_threshold=config.throttle_rotation_threshold,
    )
    return EndpointPool(config.endpoints, limiter)


def _is_throttle_error(err: dict[str, Any]) -> bool:
    code = err.get("code")
    if code in THROTTLE_CODES:
        return True
    message = str(err.get("message", "")).lower()
    return "too many requests" in message or "rate limit" in message


def plan_catch_up(current: int, from_height: int | None) -> tuple[int | None, int]:
    """
    Split a start request into (backfill start, tail-after height).

    Backfill covers [from_height, current) and is None when there is nothing to
    backfill. Live tailing delivers every height above the second value, so a
    start at or above ``current`` waits for that height to appear and no start
    at all begins with the block after ``current``.
    """
    if from_height is not None and from_height < current:
        return from_height, current - 1
    if from_height is not None:
        return None, from_height - 1
    return None, current


class RateLimitedBlockSource:
    """
    Block source over a pool of equivalent Solana RPC endpoints.

    One source drives one polling loop. Pass ``pool`` to share an endpoint pool
    (and therefore its request ceiling) between sources; a source only resets
    rate-limit counters of a pool it created itself.
    """

    def __init__(
        self,
        config: SourceConfig | None = None,
        *,
        pool: EndpointPool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._config = config or SourceConfig()
        self._owns_pool = pool is None
        self._pool = pool or build_pool(self._config)
        self._transport = transport
        self._event_sink = event_sink or log_event
        self._client: httpx.AsyncClient | None = None
        self._stop = asyncio.Event()
        self._next_rpc_id = 0

    @property
    def config(self) -> SourceConfig:
        return self._config

    @property
    def pool(self) -> EndpointPool:
        return self._pool

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Signal the polling loop to stop; any pending wait ends immediately."""
        self._stop.set()

    def reset(self) -> None:
        """Re-arm after a stop and clear rate-limit counters for a fresh start."""
        self._stop = asyncio.Event()
        if self._owns_pool:
            self._pool.reset()

    async def aclose(self) -> None:
        """Release the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def _check_stopped(self) -> None:
        if self._stop.is_set():
            raise SourceStopped("block source stopped")

    async def _wait(self, seconds: float) -> None:
        """Sleep up to ``seconds``; raise SourceStopped as soon as stop is requested."""
        self._check_stopped()
        if seconds <= 0:
            # Still yield so a zero-delay loop cannot starve other tasks
            await asyncio.sleep(0)
            self._check_stopped()
            return
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise SourceStopped("block source stopped")

    # ------------------------------------------------------------------
    # JSON-RPC
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.request_timeout),
                transport=self._transport,
            )
        return self._client

    def _next_id(self) -> int:
        self._next_rpc_id += 1
        return self._next_rpc_id

    async def _send_once(self, endpoint: str, method: str, params: list[Any]) -> Any:
        """One JSON-RPC POST; raise Throttled, RpcError, or httpx errors."""
        body = {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params}
        resp = await self._get_client().post(endpoint, json=body)
        if resp.status_code == 429:
            raise Throttled(mask_url(endpoint))
        resp.raise_for_status()
        data = resp.json()
        err = data.get("error")
        if err:
            if not isinstance(err, dict):
                raise RpcError(None, str(err))
            if _is_throttle_error(err):
                raise Throttled(mask_url(endpoint), str(err.get("message", "rate limited")))
            raise RpcError(err.get("code"), str(err.get("message", err)))
        if "result" not in data:
            raise RpcError(None, "Solana RPC returned no result")
        return data["result"]

    async def _request(
        self,
        method: str,
        params: list[Any],
        *,
        passthrough_codes: frozenset[int] = frozenset(),
    ) -> Any:
        """
        Send a request with rate limiting, throttle backoff, endpoint rotation,
        and bounded retries. RpcErrors whose code is in ``passthrough_codes``
        are raised immediately without retrying.
        """
        cfg = self._config
        pool = self._pool
        limiter = pool.limiter
        throttle_attempt = 0
        rotations = 0
        failures = 0
        retry_delay = cfg.retry_delay
        while True:
            await pool.acquire(self._wait)
            index, endpoint = pool.current()
            try:
                result = await self._send_once(endpoint, method, params)
            except Throttled:
                wait = limiter.register_throttle(pool.state, throttle_attempt)
                throttle_attempt += 1
                consecutive = pool.state.consecutive_throttles
                if limiter.should_rotate(pool.state):
                    rotations += 1
                    if rotations >= len(pool):
                        logger.error(
                            "rpc_all_endpoints_throttled",
                            method=method,
                            endpoints=len(pool),
                        )
                        raise UpstreamUnavailable(
                            f"{method}: every endpoint in the pool is throttling"
                        ) from None
                    _, new_endpoint = await pool.rotate(index)
                    throttle_attempt = 0
                    self._event_sink(
                        ThrottleBackoff(
                            endpoint=mask_url(endpoint),
                            method=method,
                            consecutive=consecutive,
                            wait_sec=cfg.rotation_pause,
                            rotated_to=mask_url(new_endpoint),
                        )
                    )
                    await self._wait(cfg.rotation_pause)
                else:
                    self._event_sink(
                        ThrottleBackoff(
                            endpoint=mask_url(endpoint),
                            method=method,
                            consecutive=consecutive,
                            wait_sec=round(wait, 3),
                        )
                    )
                    await self._wait(wait)
                continue
            except RpcError as e:
                if e.code in passthrough_codes:
                    raise
                last_error: Exception = e
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
            else:
                limiter.register_success(pool.state)
                return result

            failures += 1
            if failures >= cfg.max_retries:
                logger.error(
                    "rpc_give_up",
                    method=method,
                    endpoint=mask_url(endpoint),
                    max_retries=cfg.max_retries,
                    error=str(last_error),
                )
                raise UpstreamUnavailable(
                    f"{method}: retry budget exhausted after {failures} attempts: {last_error}"
                ) from last_error
            logger.warning(
                "rpc_retry",
                method=method,
                endpoint=mask_url(endpoint),
                attempt=failures,
                max_retries=cfg.max_retries,
                delay_sec=retry_delay,
                error=str(last_error),
            )
            await self._wait(retry_delay)
            retry_delay *= 2

    async def current_height(self) -> int:
        """Latest slot at the configured commitment."""
        result = await self._request("getSlot", [{"commitment": self._config.commitment}])
        return int(result)

    async def block_at(self, height: int) -> Block:
        """Full block at ``height``; BlockUnavailable when skipped, pruned, or missing."""
        params = [
            height,
            {
                "encoding": "json",
                "maxSupportedTransactionVersion": 0,
                "transactionDetails": "full",
                "rewards": False,
                "commitment": self._config.commitment,
            },
        ]
        try:
            result = await self._request(
                "getBlock", params, passthrough_codes=BLOCK_UNAVAILABLE_CODES
            )
        except RpcError as e:
            raise BlockUnavailable(height, e.message) from e
        if not isinstance(result, dict):
            raise BlockUnavailable(height, "node returned no block")
        return Block.from_rpc_result(height, result)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _deliver(self, on_block: BlockCallback, height: int) -> None:
        """Fetch one height and hand it to the callback; skip unavailable blocks."""
        try:
            block = await self.block_at(height)
        except BlockUnavailable as e:
            logger.warning("block_unavailable", slot=height, reason=e.reason)
            return
        try:
            result = on_block(block)
            if inspect.isawaitable(result):
                await result
        except SourceStopped:
            raise
        except Exception as e:
            logger.exception("block_callback_failed", slot=height, error=str(e))

    async def backfill(self, on_block: BlockCallback, start_height: int, end_height: int) -> None:
        """Deliver heights [start_height, end_height) in batches with a pause between batches."""
        cfg = self._config
        total = max(0, end_height - start_height)
        logger.info(
            "backfill_started",
            start_slot=start_height,
            end_slot=end_height,
            total_slots=total,
            batch_size=cfg.historical_batch_size,
        )
        height = start_height
        while height < end_height:
            batch_end = min(height + cfg.historical_batch_size, end_height)
            for h in range(height, batch_end):
                self._check_stopped()
                await self._deliver(on_block, h)
            height = batch_end
            logger.info(
                "backfill_batch_done",
                next_slot=height,
                remaining=end_height - height,
            )
            if height < end_height:
                await self._wait(cfg.historical_batch_delay)
        self._check_stopped()
        logger.info("backfill_completed", start_slot=start_height, end_slot=end_height)

    async def tail(self, on_block: BlockCallback, after_height: int) -> None:
        """Deliver every height above ``after_height`` as it appears; runs until stopped."""
        cfg = self._config
        last = after_height
        logger.info("live_tail_started", after_slot=after_height)
        while True:
            self._check_stopped()
            latest = await self.current_height()
            if latest > last:
                end = min(latest, last + cfg.max_slots_per_batch)
                for h in range(last + 1, end + 1):
                    await self._deliver(on_block, h)
                    last = h
                    self._check_stopped()
                    if h < end:
                        await self._wait(cfg.slot_processing_delay)
                logger.debug("live_tail_cycle", processed_to=last, latest=latest, lag=latest - last)
            await self._wait(cfg.slot_poll_interval)

    async def poll_new_heights(self, on_block: BlockCallback, from_height: int | None = None) -> None:
        """
        Run until stopped: backfill from ``from_height`` (when below the current
        height), then tail live blocks. Returns normally when stopped; raises
        UpstreamUnavailable when the upstream is exhausted.
        """
        try:
            current = await self.current_height()
            backfill_from, tail_after = plan_catch_up(current, from_height)
            if backfill_from is not None:
                await self.backfill(on_block, backfill_from, current)
            await self.tail(on_block, tail_after)
        except SourceStopped:
            logger.info("poll_loop_stopped")
