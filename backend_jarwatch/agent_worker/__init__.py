"""
Agent worker package: monitoring sessions, observers, the in-memory transfer
store, the JarMonitor facade and the CLI runtime.
"""

from backend_jarwatch.agent_worker.hooks import JarObserver, ObserverFailure, ObserverRegistry
from backend_jarwatch.agent_worker.monitor import JarMonitor
from backend_jarwatch.agent_worker.sessions import (
    MonitoringSession,
    SessionHandle,
    SessionManager,
    SessionOptions,
)
from backend_jarwatch.agent_worker.store import TransferStore

__all__ = [
    "JarMonitor",
    "JarObserver",
    "MonitoringSession",
    "ObserverFailure",
    "ObserverRegistry",
    "SessionHandle",
    "SessionManager",
    "SessionOptions",
    "TransferStore",
]
