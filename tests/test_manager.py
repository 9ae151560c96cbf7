"""
Tests for the session manager: validation, handles, progress, stop, shared pool.
"""

from __future__ import annotations

import asyncio

import pytest
from helpers import ENDPOINT_A, FakeChain, TARGET_MINT, block_result, buy_item, fast_source_config

from acquisition_tracker.agent_worker import SessionManager
from acquisition_tracker.config.settings import SessionConfig
from acquisition_tracker.core.exceptions import InvalidTokenIdentifier, SessionNotFound


def _manager(chain: FakeChain, target: int = 2, **kwargs) -> SessionManager:
    return SessionManager(
        fast_source_config(slot_poll_interval=kwargs.pop("slot_poll_interval", 0.0)),
        SessionConfig(target_count=target, progress_log_interval=0),
        transport=chain.transport(),
        **kwargs,
    )


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    for _ in range(int(timeout / 0.01)):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


def test_invalid_token_rejected_before_network():
    chain = FakeChain({}, slots=[1])
    manager = _manager(chain)

    async def run() -> None:
        with pytest.raises(InvalidTokenIdentifier):
            await manager.start_tracking("not-a-mint")
        with pytest.raises(ValueError):
            await manager.start_tracking(TARGET_MINT, start_height=-1)

    asyncio.run(run())
    assert chain.calls == []
    assert manager.list_sessions() == []


def test_session_runs_to_completion():
    blocks = {h: block_result([buy_item(f"sig{h}")]) for h in range(10, 13)}
    chain = FakeChain(blocks, slots=[13])
    manager = _manager(chain, target=2)

    async def run() -> str:
        handle = await manager.start_tracking(TARGET_MINT, start_height=10)
        await _wait_for(lambda: manager.session_status(handle)[0] == "completed")
        return handle

    handle = asyncio.run(run())
    assert manager.get_progress(handle) == {"current": 3, "target": 2, "percentage": "150.0", "isComplete": True}
    assert [r.transaction_hash for r in manager.get_records(handle)] == ["sig10", "sig11", "sig12"]
    (listed,) = manager.list_sessions()
    assert listed["session_id"] == handle
    assert listed["token"] == TARGET_MINT
    assert listed["status"] == "completed"


def test_stop_tracking_ends_running_session():
    chain = FakeChain({}, slots=[50])
    manager = _manager(chain, target=5, slot_poll_interval=30.0)

    async def run() -> str:
        handle = await manager.start_tracking(TARGET_MINT)
        await _wait_for(lambda: manager.session_status(handle)[0] == "running")
        await manager.stop_tracking(handle)
        return handle

    handle = asyncio.run(run())
    assert manager.session_status(handle) == ("completed", None)
    assert manager.get_progress(handle)["current"] == 0


def test_errored_session_reports_error():
    chain = FakeChain({}, slots=[1], script=[500] * 10)
    manager = _manager(chain)

    async def run() -> str:
        handle = await manager.start_tracking(TARGET_MINT)
        await _wait_for(lambda: manager.session_status(handle)[0] == "error")
        return handle

    handle = asyncio.run(run())
    status, error = manager.session_status(handle)
    assert status == "error"
    assert error


def test_target_count_override_per_session():
    chain = FakeChain({}, slots=[50])
    manager = _manager(chain, target=2, slot_poll_interval=30.0)

    async def run() -> str:
        handle = await manager.start_tracking(TARGET_MINT, target_count=7)
        await manager.aclose()
        return handle

    handle = asyncio.run(run())
    assert manager.get_progress(handle)["target"] == 7


def test_unknown_handle():
    manager = _manager(FakeChain({}, slots=[1]))
    with pytest.raises(SessionNotFound):
        manager.get_progress("missing")
    with pytest.raises(KeyError):
        manager.session_status("missing")


def test_shared_pool_is_used_by_every_session():
    chain = FakeChain({}, slots=[50])
    manager = _manager(chain, shared_pool=True, slot_poll_interval=30.0)

    async def run() -> tuple[str, str]:
        a = await manager.start_tracking(TARGET_MINT)
        b = await manager.start_tracking(TARGET_MINT)
        await manager.aclose()
        return a, b

    a, b = asyncio.run(run())
    assert a != b
    pool_a = manager.get_session(a).source.pool
    pool_b = manager.get_session(b).source.pool
    assert pool_a is pool_b
    assert pool_a.endpoints == [ENDPOINT_A]
