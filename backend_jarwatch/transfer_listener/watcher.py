"""
Real-time transfer watcher: push subscription plus periodic catch-up scan.

Responsibilities:
- Read the chain head as a baseline, then run two activity streams against the
  jar: a WebSocket log subscription and a timer that scans
  [last_scanned_block + 1, head] through the LogScanner.
- Deliver each transfer once per (transaction_hash, log_index), whichever path
  sees it first.
- Keep running through subscription and scan failures (logged; the timer
  retries on its next tick). stop() tears both streams down.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable

from backend_jarwatch.config.settings import MonitoringConfig
from backend_jarwatch.core.exceptions import WatcherStateError
from backend_jarwatch.jarwatch_logging import get_logger, short_hash
from backend_jarwatch.ledger.models import RawLog
from backend_jarwatch.transfer_listener.models import DetectedTransfer, TransferKey
from backend_jarwatch.transfer_listener.scanner import LogScanner

logger = get_logger(__name__)

TransferCallback = (
    Callable[[DetectedTransfer], Awaitable[None]] | Callable[[DetectedTransfer], None]
)


class WatcherState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    ACTIVE = "active"


class RealTimeWatcher:
    """
    Continuous monitor for one jar.

    `reader` needs get_block_number(); `subscriber` (optional) is a
    ledger.subscription.LogSubscriber-like object with
    run(log_filter, on_log, stop_event).
    """

    def __init__(
        self,
        scanner: LogScanner,
        reader: Any,
        *,
        subscriber: Any = None,
        config: MonitoringConfig | None = None,
    ) -> None:
        self._scanner = scanner
        self._reader = reader
        self._subscriber = subscriber
        self._config = config or MonitoringConfig()
        self._state = WatcherState.STOPPED
        self._on_transfer: TransferCallback | None = None
        self._last_scanned_block = 0
        self._stop_event = asyncio.Event()
        self._timer_task: asyncio.Task[None] | None = None
        self._subscription_task: asyncio.Task[None] | None = None
        self._seen: set[TransferKey] = set()
        self._seen_order: deque[TransferKey] = deque()
        self._delivered = 0

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is WatcherState.ACTIVE

    @property
    def last_scanned_block(self) -> int:
        return self._last_scanned_block

    @property
    def delivered_count(self) -> int:
        return self._delivered

    async def start(self, on_transfer: TransferCallback | None = None) -> None:
        """
        Begin watching from the current chain head.

        Raises WatcherStateError when not STOPPED; a failure reading the chain
        head reverts to STOPPED and propagates.
        """
        if self._state is not WatcherState.STOPPED:
            raise WatcherStateError(f"Watcher already {self._state.value}")
        self._state = WatcherState.STARTING
        try:
            baseline = await self._reader.get_block_number()
        except Exception:
            self._state = WatcherState.STOPPED
            raise
        self._last_scanned_block = baseline
        self._on_transfer = on_transfer
        self._stop_event = asyncio.Event()
        self._state = WatcherState.ACTIVE

        if self._config.enable_real_time and self._subscriber is not None:
            self._subscription_task = asyncio.create_task(self._run_subscription())
        self._timer_task = asyncio.create_task(self._run_timer())
        logger.info(
            "watcher_started",
            jar_address=self._scanner.jar_address,
            baseline_block=baseline,
            scan_interval_sec=self._config.scan_interval_sec,
            real_time=self._subscription_task is not None,
        )

    async def stop(self) -> None:
        """Cancel subscription and timer; no-op when already stopped."""
        if self._state is WatcherState.STOPPED:
            return
        self._stop_event.set()
        tasks = [t for t in (self._subscription_task, self._timer_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._subscription_task = None
        self._timer_task = None
        self._state = WatcherState.STOPPED
        logger.info(
            "watcher_stopped",
            jar_address=self._scanner.jar_address,
            last_scanned_block=self._last_scanned_block,
            delivered=self._delivered,
        )

    async def poll_once(self) -> int:
        """
        One catch-up tick: scan the next unscanned block window and deliver
        results. Returns the number of newly delivered transfers.
        Errors propagate to the caller (the timer loop logs them).
        """
        head = await self._reader.get_block_number()
        if head <= self._last_scanned_block:
            return 0
        from_block = self._last_scanned_block + 1
        to_block = min(head, from_block + self._config.blocks_per_batch - 1)
        logger.debug(
            "watcher_batch_scan",
            jar_address=self._scanner.jar_address,
            from_block=from_block,
            to_block=to_block,
        )
        transfers = await self._scanner.scan_block_range(from_block, to_block)
        delivered = 0
        for transfer in transfers:
            if await self._deliver(transfer, source="batch"):
                delivered += 1
        self._last_scanned_block = max(self._last_scanned_block, to_block)
        if transfers:
            logger.info(
                "watcher_batch_found",
                jar_address=self._scanner.jar_address,
                from_block=from_block,
                to_block=to_block,
                found=len(transfers),
                delivered=delivered,
            )
        return delivered

    async def handle_log(self, log: RawLog) -> bool:
        """Decode a pushed log and deliver it. Returns True if newly delivered."""
        if log.removed:
            return False
        transfer = await self._scanner.process_log(log)
        if transfer is None:
            return False
        return await self._deliver(transfer, source="push")

    async def _run_timer(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._config.scan_interval_sec)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    "watcher_batch_scan_failed",
                    jar_address=self._scanner.jar_address,
                    last_scanned_block=self._last_scanned_block,
                    error=str(e),
                )

    async def _run_subscription(self) -> None:
        try:
            await self._subscriber.run(self._scanner.log_filter(), self.handle_log, self._stop_event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # The timer keeps catching up even if the push feed is gone for good
            logger.error(
                "watcher_subscription_failed",
                jar_address=self._scanner.jar_address,
                error=str(e),
            )

    def _mark_seen(self, key: TransferKey) -> bool:
        """Record key; False if already seen. Evicts oldest keys over capacity."""
        if key in self._seen:
            return False
        if len(self._seen) >= self._config.max_seen_transfers:
            self._seen.discard(self._seen_order.popleft())
        self._seen.add(key)
        self._seen_order.append(key)
        return True

    async def _deliver(self, transfer: DetectedTransfer, *, source: str) -> bool:
        if not self._mark_seen(transfer.key):
            logger.debug(
                "watcher_duplicate_skipped",
                transaction_hash=short_hash(transfer.transaction_hash, 18),
                log_index=transfer.log_index,
                source=source,
            )
            return False
        self._delivered += 1
        logger.info(
            "watcher_transfer_detected",
            jar_address=self._scanner.jar_address,
            source=source,
            token=transfer.token,
            token_symbol=transfer.token_symbol,
            amount=transfer.amount_formatted,
            is_direct_transfer=transfer.is_direct_transfer,
            transaction_hash=short_hash(transfer.transaction_hash, 18),
        )
        cb = self._on_transfer
        if cb is None:
            return True
        try:
            result = cb(transfer)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(
                "watcher_callback_failed",
                jar_address=self._scanner.jar_address,
                transaction_hash=short_hash(transfer.transaction_hash, 18),
                error=str(e),
            )
        return True
