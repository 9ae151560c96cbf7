"""
Pytest fixtures for tracker tests. Builders live in helpers.py.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from acquisition_tracker.config.settings import SessionConfig


@pytest.fixture
def events() -> list[Any]:
    """Collected pipeline events, in emission order."""
    return []


@pytest.fixture
def sink(events: list[Any]) -> Callable[[Any], None]:
    return events.append


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(target_count=3, progress_log_interval=0)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep a developer's .env / shell RPC settings out of config tests."""
    for name in ("SOLANA_RPC_URL", "SOLANA_RPC_URLS", "HELIUS_API_KEY", "TARGET_BUY_COUNT", "MAX_RECORDS_RETAINED"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("acquisition_tracker.config.env.load_tracker_env", lambda: None)
    monkeypatch.setattr("acquisition_tracker.config.settings.load_tracker_env", lambda: None)
