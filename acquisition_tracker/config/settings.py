"""
Application settings.

Typed settings for the block source and tracking sessions, loaded from
environment variables (and .env) with conservative defaults: public nodes
throttle aggressively, so the defaults stay at single-digit requests per
second and multi-hundred-millisecond spacing.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from acquisition_tracker.config.env import (
    FALLBACK_RPC_URLS,
    MAINNET_RPC_URL,
    env_float,
    env_int,
    get_rpc_endpoints,
    load_tracker_env,
)

DEFAULT_MAX_REQUESTS_PER_SECOND = 3
DEFAULT_REQUEST_DELAY_SEC = 0.5
DEFAULT_BACKOFF_MULTIPLIER = 3.0
DEFAULT_MAX_RATE_LIMIT_DELAY_SEC = 60.0
DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_DELAY_SEC = 1.0
DEFAULT_SLOT_POLL_INTERVAL_SEC = 5.0
DEFAULT_MAX_SLOTS_PER_BATCH = 2
DEFAULT_SLOT_PROCESSING_DELAY_SEC = 1.0
DEFAULT_HISTORICAL_BATCH_SIZE = 10
DEFAULT_HISTORICAL_BATCH_DELAY_SEC = 2.0
DEFAULT_THROTTLE_ROTATION_THRESHOLD = 3
DEFAULT_ROTATION_PAUSE_SEC = 1.0
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0

DEFAULT_TARGET_COUNT = 100
DEFAULT_PROGRESS_LOG_INTERVAL_SEC = 30.0


def _default_endpoints() -> list[str]:
    return [MAINNET_RPC_URL, *FALLBACK_RPC_URLS]


@dataclass
class SourceConfig:
    """
    Config for the rate-limited block source.

    endpoints: Equivalent RPC endpoints; the first is used until throttling forces rotation.
    max_requests_per_second: Sliding one-second window ceiling.
    request_delay: Minimum spacing between any two requests (seconds).
    rate_limit_backoff_multiplier: Factor applied to the internal delay on each throttle.
    max_rate_limit_delay: Cap for the internal delay and any single backoff wait.
    max_retries: Retry budget for non-throttling errors.
    retry_delay: Initial delay for non-throttling retries; doubles per attempt.
    slot_poll_interval: Pause between live-tail poll cycles.
    max_slots_per_batch: Max new heights fetched per live-tail cycle.
    slot_processing_delay: Pause between individual height fetches.
    historical_batch_size / historical_batch_delay: Backfill batching.
    throttle_rotation_threshold: Consecutive throttles before rotating endpoints.
    rotation_pause: Pause after an endpoint rotation.
    """

    endpoints: list[str] = field(default_factory=_default_endpoints)
    max_requests_per_second: int = DEFAULT_MAX_REQUESTS_PER_SECOND
    request_delay: float = DEFAULT_REQUEST_DELAY_SEC
    rate_limit_backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    max_rate_limit_delay: float = DEFAULT_MAX_RATE_LIMIT_DELAY_SEC
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY_SEC
    slot_poll_interval: float = DEFAULT_SLOT_POLL_INTERVAL_SEC
    max_slots_per_batch: int = DEFAULT_MAX_SLOTS_PER_BATCH
    slot_processing_delay: float = DEFAULT_SLOT_PROCESSING_DELAY_SEC
    historical_batch_size: int = DEFAULT_HISTORICAL_BATCH_SIZE
    historical_batch_delay: float = DEFAULT_HISTORICAL_BATCH_DELAY_SEC
    throttle_rotation_threshold: int = DEFAULT_THROTTLE_ROTATION_THRESHOLD
    rotation_pause: float = DEFAULT_ROTATION_PAUSE_SEC
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SEC
    commitment: str = "confirmed"

    def __post_init__(self) -> None:
        self.endpoints = [e.strip() for e in self.endpoints if e and e.strip()]
        if not self.endpoints:
            raise ValueError("endpoints must be non-empty")
        if self.max_requests_per_second < 1:
            raise ValueError("max_requests_per_second must be >= 1")
        self.request_delay = max(0.0, float(self.request_delay))
        self.rate_limit_backoff_multiplier = max(1.0, float(self.rate_limit_backoff_multiplier))
        self.max_retries = max(1, int(self.max_retries))
        self.max_slots_per_batch = max(1, int(self.max_slots_per_batch))
        self.historical_batch_size = max(1, int(self.historical_batch_size))
        self.throttle_rotation_threshold = max(1, int(self.throttle_rotation_threshold))

    @classmethod
    def from_env(cls) -> "SourceConfig":
        """Build SourceConfig from environment with defaults."""
        load_tracker_env()
        return cls(
            endpoints=get_rpc_endpoints(),
            max_requests_per_second=env_int("MAX_REQUESTS_PER_SECOND", DEFAULT_MAX_REQUESTS_PER_SECOND),
            request_delay=env_float("REQUEST_DELAY", DEFAULT_REQUEST_DELAY_SEC),
            rate_limit_backoff_multiplier=env_float("RATE_LIMIT_BACKOFF_MULTIPLIER", DEFAULT_BACKOFF_MULTIPLIER),
            max_rate_limit_delay=env_float("MAX_RATE_LIMIT_DELAY", DEFAULT_MAX_RATE_LIMIT_DELAY_SEC),
            max_retries=env_int("MAX_RETRIES", DEFAULT_MAX_RETRIES),
            retry_delay=env_float("RETRY_DELAY", DEFAULT_RETRY_DELAY_SEC),
            slot_poll_interval=env_float("SLOT_POLL_INTERVAL", DEFAULT_SLOT_POLL_INTERVAL_SEC),
            max_slots_per_batch=env_int("MAX_SLOTS_PER_BATCH", DEFAULT_MAX_SLOTS_PER_BATCH),
            slot_processing_delay=env_float("SLOT_PROCESSING_DELAY", DEFAULT_SLOT_PROCESSING_DELAY_SEC),
            historical_batch_size=env_int("HISTORICAL_BATCH_SIZE", DEFAULT_HISTORICAL_BATCH_SIZE),
            historical_batch_delay=env_float("HISTORICAL_BATCH_DELAY", DEFAULT_HISTORICAL_BATCH_DELAY_SEC),
            throttle_rotation_threshold=env_int("THROTTLE_ROTATION_THRESHOLD", DEFAULT_THROTTLE_ROTATION_THRESHOLD),
            rotation_pause=env_float("ROTATION_PAUSE", DEFAULT_ROTATION_PAUSE_SEC),
            request_timeout=env_float("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SEC),
        )


@dataclass
class SessionConfig:
    """
    Config for a tracking session.

    target_count: Records after which live tailing completes.
    max_records_retained: Optional cap on in-memory records; None keeps everything.
    progress_log_interval: Seconds between progress log lines (0 disables).
    """

    target_count: int = DEFAULT_TARGET_COUNT
    max_records_retained: int | None = None
    progress_log_interval: float = DEFAULT_PROGRESS_LOG_INTERVAL_SEC

    def __post_init__(self) -> None:
        self.target_count = max(1, int(self.target_count))
        if self.max_records_retained is not None:
            self.max_records_retained = max(1, int(self.max_records_retained))

    @classmethod
    def from_env(cls) -> "SessionConfig":
        load_tracker_env()
        return cls(
            target_count=env_int("TARGET_BUY_COUNT", DEFAULT_TARGET_COUNT),
            max_records_retained=env_int("MAX_RECORDS_RETAINED", None),
            progress_log_interval=env_float("PROGRESS_LOG_INTERVAL", DEFAULT_PROGRESS_LOG_INTERVAL_SEC),
        )


@dataclass
class Settings:
    source: SourceConfig
    session: SessionConfig


def get_settings() -> Settings:
    """Return the current application settings, read from the environment."""
    return Settings(source=SourceConfig.from_env(), session=SessionConfig.from_env())
