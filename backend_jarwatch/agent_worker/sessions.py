"""
Monitoring sessions: long-running watchers with optional auto-recovery.

Each session owns a dedicated RealTimeWatcher (and optionally a periodic
health check task). Detected transfers are counted, stored, fanned out to
observers and the caller's callback; with auto_recover on, direct transfers
above the amount threshold trigger a quick recovery in a session-owned
background task, so the watcher keeps scanning while it waits for
confirmations. Stopping a session cancels its in-flight recoveries.
"""

from __future__ import annotations

import asyncio
import inspect
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from backend_jarwatch.agent_worker.hooks import ObserverRegistry
from backend_jarwatch.agent_worker.store import TransferStore
from backend_jarwatch.config.settings import MonitoringConfig
from backend_jarwatch.jarwatch_logging import get_logger, short_hash
from backend_jarwatch.recovery.models import JarHealth
from backend_jarwatch.recovery.planner import RecoveryPlanner
from backend_jarwatch.transfer_listener.models import DetectedTransfer
from backend_jarwatch.transfer_listener.watcher import RealTimeWatcher

logger = get_logger(__name__)

NotificationCallback = Callable[[DetectedTransfer], Any]
HealthCallback = Callable[[JarHealth], Any]
WatcherFactory = Callable[[], RealTimeWatcher]


@dataclass(frozen=True)
class SessionHandle:
    """Opaque handle for one registered session."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __str__(self) -> str:
        return f"session_{self.id}"


@dataclass
class MonitoringSession:
    jar_address: str
    start_time: float
    transfers_detected: int = 0
    transfers_processed: int = 0
    total_value_recovered: int = 0
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "jar_address": self.jar_address,
            "start_time": self.start_time,
            "transfers_detected": self.transfers_detected,
            "transfers_processed": self.transfers_processed,
            "total_value_recovered": str(self.total_value_recovered),
            "is_active": self.is_active,
        }


@dataclass
class SessionOptions:
    """
    auto_recover: run quick recovery for direct transfers (needs a signer).
    notification_callback: called with each detected transfer.
    on_health_change: called with each periodic health result.
    health_check_interval_sec: overrides the config interval; None uses it.
    """

    auto_recover: bool = False
    notification_callback: NotificationCallback | None = None
    on_health_change: HealthCallback | None = None
    health_check_interval_sec: float | None = None


@dataclass
class _SessionEntry:
    session: MonitoringSession
    watcher: RealTimeWatcher
    options: SessionOptions
    health_task: asyncio.Task[None] | None = None
    recovery_tasks: set[asyncio.Task[None]] = field(default_factory=set)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class SessionManager:
    """
    Registry of active monitoring sessions for one jar.

    `watcher_factory` builds a fresh RealTimeWatcher per session.
    """

    def __init__(
        self,
        planner: RecoveryPlanner,
        watcher_factory: WatcherFactory,
        *,
        config: MonitoringConfig | None = None,
        store: TransferStore | None = None,
        observers: ObserverRegistry | None = None,
    ) -> None:
        self._planner = planner
        self._watcher_factory = watcher_factory
        self._config = config or MonitoringConfig()
        self._store = store if store is not None else TransferStore()
        self._observers = observers if observers is not None else ObserverRegistry()
        self._sessions: dict[SessionHandle, _SessionEntry] = {}

    async def start_monitoring_session(self, options: SessionOptions | None = None) -> SessionHandle:
        """
        Register a session and start its watcher. A watcher start failure
        unregisters the session and propagates.
        """
        options = options or SessionOptions()
        handle = SessionHandle()
        session = MonitoringSession(jar_address=self._planner.jar_address, start_time=time.time())
        watcher = self._watcher_factory()
        entry = _SessionEntry(session=session, watcher=watcher, options=options)
        self._sessions[handle] = entry

        async def on_transfer(transfer: DetectedTransfer) -> None:
            await self._on_transfer(handle, entry, transfer)

        try:
            await watcher.start(on_transfer)
        except Exception as e:
            self._sessions.pop(handle, None)
            logger.error("session_start_failed", session=str(handle), error=str(e))
            raise

        interval = options.health_check_interval_sec or self._config.health_check_interval_sec
        if interval:
            entry.health_task = asyncio.create_task(self._run_health_checks(handle, entry, interval))

        logger.info(
            "session_started",
            session=str(handle),
            jar_address=session.jar_address,
            auto_recover=options.auto_recover,
            health_check_interval_sec=interval,
        )
        return handle

    async def stop_monitoring_session(self, handle: SessionHandle) -> MonitoringSession | None:
        """Stop and remove a session; returns its final state, or None for an unknown handle."""
        entry = self._sessions.pop(handle, None)
        if entry is None:
            return None
        await entry.watcher.stop()
        tasks = list(entry.recovery_tasks)
        if entry.health_task is not None:
            tasks.append(entry.health_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        entry.session.is_active = False
        logger.info(
            "session_stopped",
            session=str(handle),
            transfers_detected=entry.session.transfers_detected,
            transfers_processed=entry.session.transfers_processed,
            duration_sec=round(time.time() - entry.session.start_time, 2),
        )
        return entry.session

    async def wait_for_recoveries(self, handle: SessionHandle) -> None:
        """Wait for the session's in-flight auto-recoveries to finish."""
        entry = self._sessions.get(handle)
        if entry is not None and entry.recovery_tasks:
            await asyncio.gather(*list(entry.recovery_tasks), return_exceptions=True)

    def get_session_status(self, handle: SessionHandle) -> MonitoringSession | None:
        entry = self._sessions.get(handle)
        return entry.session if entry else None

    def get_active_sessions(self) -> dict[SessionHandle, MonitoringSession]:
        return {h: e.session for h, e in self._sessions.items() if e.session.is_active}

    async def stop_all(self) -> list[MonitoringSession]:
        stopped = []
        for handle in list(self._sessions):
            session = await self.stop_monitoring_session(handle)
            if session is not None:
                stopped.append(session)
        return stopped

    async def _on_transfer(self, handle: SessionHandle, entry: _SessionEntry, transfer: DetectedTransfer) -> None:
        session = entry.session
        session.transfers_detected += 1
        self._store.add(transfer)
        logger.info(
            "session_transfer_detected",
            session=str(handle),
            token_symbol=transfer.token_symbol,
            amount=transfer.amount_formatted,
            sender=transfer.sender,
            is_direct_transfer=transfer.is_direct_transfer,
        )
        await self._observers.notify_transfer(transfer)

        callback = entry.options.notification_callback
        if callback is not None:
            try:
                await _maybe_await(callback(transfer))
            except Exception as e:
                logger.exception("session_callback_failed", session=str(handle), error=str(e))

        if (
            entry.options.auto_recover
            and transfer.is_direct_transfer
            and self._planner.has_signer
            and transfer.amount >= self._config.min_amount_threshold
        ):
            task = asyncio.create_task(self._auto_recover(handle, session, transfer))
            entry.recovery_tasks.add(task)
            task.add_done_callback(entry.recovery_tasks.discard)

    async def _auto_recover(self, handle: SessionHandle, session: MonitoringSession, transfer: DetectedTransfer) -> None:
        try:
            pending = await self._planner.quick_recover(transfer.token)
            await pending.wait()
        except Exception as e:
            logger.warning(
                "session_auto_recover_failed",
                session=str(handle),
                token=transfer.token,
                transaction_hash=short_hash(transfer.transaction_hash, 18),
                error=str(e),
            )
            return
        session.transfers_processed += 1
        session.total_value_recovered += transfer.amount
        logger.info(
            "session_auto_recovered",
            session=str(handle),
            token=transfer.token,
            amount=transfer.amount_formatted,
            tx_hash=pending.tx_hash,
        )

    async def _run_health_checks(self, handle: SessionHandle, entry: _SessionEntry, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            health = await self._planner.check_jar_health()
            await self._observers.notify_health(health)
            callback = entry.options.on_health_change
            if callback is not None:
                try:
                    await _maybe_await(callback(health))
                except Exception as e:
                    logger.exception("session_health_callback_failed", session=str(handle), error=str(e))
