"""
Observer hooks for transfer and health notifications.

Observers are plain objects implementing JarObserver. The registry calls
every observer for every event; an observer that raises is logged and the
failure is recorded in `failures`, and the remaining observers still run.
"""

from __future__ import annotations

import inspect
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.recovery.models import JarHealth
from backend_jarwatch.transfer_listener.models import DetectedTransfer

logger = get_logger(__name__)

MAX_RECORDED_FAILURES = 100


@runtime_checkable
class JarObserver(Protocol):
    """Receives monitoring events. Methods may be sync or async."""

    def on_transfer_detected(self, transfer: DetectedTransfer) -> object: ...

    def on_health_change(self, health: JarHealth) -> object: ...


@dataclass(frozen=True)
class ObserverFailure:
    observer: str
    event: str
    error: str
    at: float


class ObserverRegistry:
    def __init__(self) -> None:
        self._observers: list[JarObserver] = []
        self.failures: list[ObserverFailure] = []

    def __len__(self) -> int:
        return len(self._observers)

    def register(self, observer: JarObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unregister(self, observer: JarObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    async def notify_transfer(self, transfer: DetectedTransfer) -> None:
        for observer in list(self._observers):
            await self._call(observer, "on_transfer_detected", transfer)

    async def notify_health(self, health: JarHealth) -> None:
        for observer in list(self._observers):
            await self._call(observer, "on_health_change", health)

    async def _call(self, observer: JarObserver, event: str, payload: object) -> None:
        try:
            result = getattr(observer, event)(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            name = type(observer).__name__
            logger.exception("observer_failed", observer=name, observer_event=event, error=str(e))
            self.failures.append(ObserverFailure(observer=name, event=event, error=str(e), at=time.time()))
            if len(self.failures) > MAX_RECORDED_FAILURES:
                del self.failures[0]
