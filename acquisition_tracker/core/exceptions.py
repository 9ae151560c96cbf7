"""
Application-level exceptions.

Recoverable upstream conditions (Throttled, BlockUnavailable) are handled
inside the block source and polling loop; UpstreamUnavailable is fatal to a
session; InvalidTokenIdentifier is raised before any network call.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all tracker errors."""


class Throttled(TrackerError):
    """The upstream node rejected a request for rate-limit reasons (HTTP 429)."""

    def __init__(self, endpoint: str, message: str = "rate limited") -> None:
        super().__init__(f"{message} ({endpoint})")
        self.endpoint = endpoint


class UpstreamUnavailable(TrackerError):
    """Every endpoint is exhausted or the retry budget ran out."""


class BlockUnavailable(TrackerError):
    """The node pruned, skipped, or never produced the requested height."""

    def __init__(self, height: int, reason: str = "block not available") -> None:
        super().__init__(f"slot {height}: {reason}")
        self.height = height
        self.reason = reason


class DecodeFailure(TrackerError):
    """One instruction payload could not be decoded; never fatal."""


class InvalidTokenIdentifier(TrackerError, ValueError):
    """The token mint address failed the base58 format check."""

    def __init__(self, token: object) -> None:
        super().__init__(f"Invalid token mint address: {token!r}")
        self.token = token


class SessionNotFound(TrackerError, KeyError):
    """No tracking session exists for the given handle."""


class SourceStopped(TrackerError):
    """Raised out of a wait when the block source was asked to stop."""


class RpcError(TrackerError):
    """JSON-RPC error object returned by the node (non-throttling)."""

    def __init__(self, code: int | None, message: str) -> None:
        super().__init__(f"Solana RPC error: {message} (code={code})")
        self.code = code
        self.message = message
