"""
Core utilities: exception taxonomy shared across ledger, listener,
analysis engine, recovery planner, and agent worker.
"""

from backend_jarwatch.core.exceptions import (
    ActionExecutionError,
    HealthCheckError,
    JarWatchError,
    LedgerRpcError,
    LogProcessingError,
    NothingToRecoverError,
    ScanError,
    SignerRequiredError,
    SubscriptionError,
    WatcherStateError,
)

__all__ = [
    "ActionExecutionError",
    "HealthCheckError",
    "JarWatchError",
    "LedgerRpcError",
    "LogProcessingError",
    "NothingToRecoverError",
    "ScanError",
    "SignerRequiredError",
    "SubscriptionError",
    "WatcherStateError",
]
