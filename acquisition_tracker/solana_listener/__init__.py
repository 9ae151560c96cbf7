"""
Solana listener package — rate-limited block retrieval.

Polls a pool of equivalent RPC endpoints for slots and full blocks, keeps the
request rate under the configured ceiling, backs off on throttling, and
rotates endpoints when one keeps refusing requests.
"""

from acquisition_tracker.solana_listener.block_source import RateLimitedBlockSource, build_pool, plan_catch_up
from acquisition_tracker.solana_listener.endpoints import EndpointPool
from acquisition_tracker.solana_listener.models import (
    Block,
    InnerInstructionGroup,
    Instruction,
    RawTransaction,
    TokenBalance,
)
from acquisition_tracker.solana_listener.rate_limiter import RateLimiter, RateLimitState

__all__ = [
    "Block",
    "EndpointPool",
    "InnerInstructionGroup",
    "Instruction",
    "RateLimitState",
    "RateLimitedBlockSource",
    "RateLimiter",
    "RawTransaction",
    "TokenBalance",
    "build_pool",
    "plan_catch_up",
]
