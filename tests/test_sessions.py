"""
Tests for agent_worker.sessions: session lifecycle, transfer fan-out, auto-recovery, health loop.

Watchers are replaced with FakeWatcher so tests drive transfer callbacks directly.
"""

from __future__ import annotations

import asyncio

import pytest

from backend_jarwatch.agent_worker import (
    ObserverRegistry,
    SessionHandle,
    SessionManager,
    SessionOptions,
    TransferStore,
)
from backend_jarwatch.analysis_engine import AnalysisEngine
from backend_jarwatch.config.settings import MonitoringConfig
from backend_jarwatch.core.exceptions import LedgerRpcError
from backend_jarwatch.recovery import RecoveryPlanner
from backend_jarwatch.transfer_listener.scanner import LogScanner
from backend_jarwatch.transfer_listener.watcher import RealTimeWatcher

from conftest import (
    JAR,
    TOKEN_A,
    FakeJarContract,
    FakeLedgerReader,
    FakeScanner,
    make_transfer,
    transfer_log,
    tx_hash,
)


class FakeWatcher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.on_transfer = None
        self.started = False
        self.stopped = False

    async def start(self, on_transfer=None):
        if self.fail:
            raise LedgerRpcError("node unavailable", method="eth_blockNumber")
        self.on_transfer = on_transfer
        self.started = True

    async def stop(self):
        self.stopped = True


class RecordingObserver:
    def __init__(self) -> None:
        self.transfers = []
        self.health = []

    def on_transfer_detected(self, transfer):
        self.transfers.append(transfer)

    def on_health_change(self, health):
        self.health.append(health)


def _manager(jar=None, *, fail_start=False, health_interval=None, min_amount=0):
    jar = jar or FakeJarContract()
    planner = RecoveryPlanner(jar, AnalysisEngine(FakeScanner()), FakeLedgerReader())
    watchers = []

    def factory():
        w = FakeWatcher(fail=fail_start)
        watchers.append(w)
        return w

    config = MonitoringConfig(health_check_interval_sec=health_interval, min_amount_threshold=min_amount)
    store = TransferStore()
    observers = ObserverRegistry()
    manager = SessionManager(planner, factory, config=config, store=store, observers=observers)
    return manager, watchers, store, observers


def test_start_and_stop_session():
    """A session is registered active, then stopped, marked inactive and removed."""
    manager, watchers, _, _ = _manager()

    async def run():
        handle = await manager.start_monitoring_session()
        assert watchers[0].started
        assert manager.get_session_status(handle).is_active
        assert handle in manager.get_active_sessions()
        final = await manager.stop_monitoring_session(handle)
        return handle, final

    handle, final = asyncio.run(run())

    assert watchers[0].stopped
    assert final.is_active is False
    assert final.jar_address == JAR
    assert manager.get_session_status(handle) is None
    assert manager.get_active_sessions() == {}


def test_stop_unknown_session_returns_none():
    manager, _, _, _ = _manager()
    assert asyncio.run(manager.stop_monitoring_session(SessionHandle())) is None


def test_handles_are_unique():
    assert SessionHandle() != SessionHandle()
    assert str(SessionHandle("abc")) == "session_abc"


def test_watcher_start_failure_unregisters_session():
    manager, _, _, _ = _manager(fail_start=True)
    with pytest.raises(LedgerRpcError):
        asyncio.run(manager.start_monitoring_session())
    assert manager.get_active_sessions() == {}


def test_transfer_fan_out():
    """A detected transfer is counted, stored, sent to observers and to the caller callback."""
    manager, watchers, store, observers = _manager()
    observer = RecordingObserver()
    observers.register(observer)
    received = []
    transfer = make_transfer()

    async def run():
        handle = await manager.start_monitoring_session(SessionOptions(notification_callback=received.append))
        await watchers[0].on_transfer(transfer)
        return manager.get_session_status(handle)

    session = asyncio.run(run())

    assert session.transfers_detected == 1
    assert session.transfers_processed == 0
    assert received == [transfer]
    assert observer.transfers == [transfer]
    assert store.all() == [transfer]


def test_auto_recover_counts_recovered_value():
    """With auto_recover, a direct transfer triggers quick recovery and updates the counters."""
    jar = FakeJarContract()
    jar.monitored = [TOKEN_A]
    jar.unaccounted = {TOKEN_A: 10**18}
    manager, watchers, _, _ = _manager(jar)

    async def run():
        handle = await manager.start_monitoring_session(SessionOptions(auto_recover=True))
        await watchers[0].on_transfer(make_transfer(amount=10**18))
        await watchers[0].on_transfer(
            make_transfer(amount=5, is_direct_transfer=False, is_jar_call=True, transaction_hash=tx_hash(2))
        )
        await manager.wait_for_recoveries(handle)
        return await manager.stop_monitoring_session(handle)

    session = asyncio.run(run())

    assert session.transfers_detected == 2
    assert session.transfers_processed == 1
    assert session.total_value_recovered == 10**18
    assert [c[0] for c in jar.calls] == ["emergency_recover"]


def test_auto_recover_failure_is_logged_not_raised():
    """Nothing to recover: the callback completes and nothing is counted as processed."""
    jar = FakeJarContract()
    jar.monitored = [TOKEN_A]
    manager, watchers, _, _ = _manager(jar)

    async def run():
        handle = await manager.start_monitoring_session(SessionOptions(auto_recover=True))
        await watchers[0].on_transfer(make_transfer())
        await manager.wait_for_recoveries(handle)
        return manager.get_session_status(handle)

    session = asyncio.run(run())

    assert session.transfers_detected == 1
    assert session.transfers_processed == 0


def test_auto_recover_respects_threshold_and_signer():
    below = FakeJarContract()
    below.unaccounted = {TOKEN_A: 1}
    manager, watchers, _, _ = _manager(below, min_amount=100)

    no_signer = FakeJarContract(has_signer=False)
    no_signer.unaccounted = {TOKEN_A: 1}
    manager2, watchers2, _, _ = _manager(no_signer)

    async def run():
        await manager.start_monitoring_session(SessionOptions(auto_recover=True))
        await watchers[0].on_transfer(make_transfer(amount=99))
        await manager2.start_monitoring_session(SessionOptions(auto_recover=True))
        await watchers2[0].on_transfer(make_transfer(amount=99))

    asyncio.run(run())

    assert below.calls == []
    assert no_signer.calls == []


def test_periodic_health_checks_reach_callback_and_observers():
    manager, _, _, observers = _manager(health_interval=0.05)
    observer = RecordingObserver()
    observers.register(observer)
    results = []

    async def run():
        handle = await manager.start_monitoring_session(SessionOptions(on_health_change=results.append))
        await asyncio.sleep(0.2)
        await manager.stop_monitoring_session(handle)

    asyncio.run(run())

    assert len(results) >= 1
    assert results[0].is_healthy is True
    assert len(observer.health) == len(results)


def test_stop_all():
    manager, watchers, _, _ = _manager()

    async def run():
        await manager.start_monitoring_session()
        await manager.start_monitoring_session()
        return await manager.stop_all()

    stopped = asyncio.run(run())

    assert len(stopped) == 2
    assert all(not s.is_active for s in stopped)
    assert all(w.stopped for w in watchers)
    assert manager.get_active_sessions() == {}


class BlockedPending:
    """A submitted transaction whose confirmation never arrives until released."""

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        self.release = asyncio.Event()
        self.cancelled = False

    async def wait(self):
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class SlowRecoveryJar(FakeJarContract):
    def __init__(self) -> None:
        super().__init__()
        self.pending_recoveries: list[BlockedPending] = []

    async def emergency_recover(self, token, amount=0, min_out=0, path=None, **kwargs):
        await self._record("emergency_recover", token, amount, min_out)
        pending = BlockedPending(tx_hash(800 + len(self.pending_recoveries)))
        self.pending_recoveries.append(pending)
        return pending


def test_watcher_keeps_scanning_while_recovery_pending():
    """A recovery waiting on confirmation neither stalls catch-up scans nor survives stop."""
    reader = FakeLedgerReader()
    jar = SlowRecoveryJar()
    jar.monitored = [TOKEN_A]
    jar.unaccounted = {TOKEN_A: 10**18}
    planner = RecoveryPlanner(jar, AnalysisEngine(FakeScanner()), reader)
    cfg = MonitoringConfig(
        enable_real_time=False, scan_interval_sec=0.1, blocks_per_batch=1, health_check_interval_sec=None
    )
    watchers = []

    def factory():
        w = RealTimeWatcher(LogScanner(reader, JAR), reader, config=cfg)
        watchers.append(w)
        return w

    manager = SessionManager(planner, factory, config=cfg)

    async def run():
        handle = await manager.start_monitoring_session(SessionOptions(auto_recover=True))
        reader.head = 1002
        reader.add_log(transfer_log(block=1001), tx_to=TOKEN_A)
        reader.add_log(transfer_log(block=1002), tx_to=TOKEN_A)
        await asyncio.sleep(0.6)
        progress = (watchers[0].last_scanned_block, manager.get_session_status(handle).transfers_detected)
        return progress, await manager.stop_monitoring_session(handle)

    (last_block, detected), session = asyncio.run(run())

    assert last_block == 1002
    assert detected == 2
    assert session.transfers_processed == 0
    assert jar.pending_recoveries
    assert all(p.cancelled for p in jar.pending_recoveries)
