"""
Command-line tracker: follow one token until the target count is reached.

Backfills from --start-height (when given and below the current slot), then
tails live blocks. SIGINT/SIGTERM stop the session cleanly; the summary is
logged on exit and records are optionally exported as JSON.

Usage: python -m acquisition_tracker.agent_worker.runtime <TOKEN_MINT> [--start-height N] [--target N] [--export PATH]
       [--log-level LEVEL] [--log-format json|console]
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Any

from acquisition_tracker.agent_worker.session import TrackingSession
from acquisition_tracker.analysis_engine.export import export_to_file
from acquisition_tracker.config import SessionConfig, get_settings
from acquisition_tracker.config.env import mask_url
from acquisition_tracker.core.exceptions import InvalidTokenIdentifier
from acquisition_tracker.core.validation import is_valid_token_mint
from acquisition_tracker.solana_listener.block_source import RateLimitedBlockSource
from acquisition_tracker.tracker_logging import get_logger
from acquisition_tracker.tracker_logging.logger import configure_structlog

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Track acquisitions of a Solana token across DEX programs")
    ap.add_argument("token", help="Token mint address (base58)")
    ap.add_argument("--start-height", type=int, default=None, help="Slot to backfill from (default: live only)")
    ap.add_argument("--target", type=int, default=None, help="Records to collect before stopping (default: TARGET_BUY_COUNT or 100)")
    ap.add_argument("--export", type=Path, default=None, help="Write collected records to this JSON file on exit")
    ap.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")
    ap.add_argument("--log-format", choices=("json", "console"), default=None, help="Log output (default: LOG_FORMAT or json)")
    return ap


async def run_tracking(
    token: str,
    *,
    start_height: int | None = None,
    target: int | None = None,
    export_path: Path | None = None,
) -> dict[str, Any]:
    """Run one session to completion or signal; return its summary."""
    if not is_valid_token_mint(token):
        raise InvalidTokenIdentifier(token)
    settings = get_settings()
    session_config = settings.session
    if target is not None:
        session_config = SessionConfig(
            target_count=target,
            max_records_retained=session_config.max_records_retained,
            progress_log_interval=session_config.progress_log_interval,
        )
    source = RateLimitedBlockSource(settings.source)
    session = TrackingSession(source, session_config)
    session.set_target(token, start_height)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, session.stop)
        except (NotImplementedError, RuntimeError):
            # Windows or non-main thread
            pass

    logger.info(
        "tracker_starting",
        token=token,
        start_slot=start_height,
        target_count=session_config.target_count,
        endpoints=[mask_url(e) for e in settings.source.endpoints],
    )
    await session.start()

    if export_path is not None:
        count = export_to_file(session.records(), export_path)
        logger.info("records_exported", path=str(export_path), records=count)
    summary = session.summary()
    status, error = session.status()
    summary["status"] = status
    summary["error"] = error
    return summary


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_level or args.log_format:
        configure_structlog(args.log_level, args.log_format)
    try:
        summary = asyncio.run(
            run_tracking(
                args.token,
                start_height=args.start_height,
                target=args.target,
                export_path=args.export,
            )
        )
    except ValueError as e:
        # includes InvalidTokenIdentifier
        logger.error("tracker_config_error", error=str(e))
        return 2
    return 1 if summary["status"] == "error" else 0


if __name__ == "__main__":
    sys.exit(main())
