"""
Configuration management for the acquisition tracker.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for block source and session tuning.
"""

from acquisition_tracker.config.settings import (  # noqa: F401
    SessionConfig,
    Settings,
    SourceConfig,
    get_settings,
)

__all__ = ["SessionConfig", "Settings", "SourceConfig", "get_settings"]
