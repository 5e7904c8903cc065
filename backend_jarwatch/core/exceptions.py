"""
Application-level exceptions.

Scan-level and session-start failures are raised to the caller; everything
inside a long-running watcher or batch operation is caught locally, logged,
and reported through health results or per-batch error lists.
"""

from __future__ import annotations


class JarWatchError(Exception):
    """Base class for all JarWatch errors."""


class LedgerRpcError(JarWatchError):
    """A JSON-RPC call to the ledger failed (transport, HTTP status, or RPC error object)."""

    def __init__(self, message: str, *, method: str | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.code = code


class ScanError(JarWatchError):
    """The log range query itself failed; aborts that scan."""

    def __init__(self, message: str, *, from_block: int | None = None, to_block: int | str | None = None) -> None:
        super().__init__(message)
        self.from_block = from_block
        self.to_block = to_block


class LogProcessingError(JarWatchError):
    """A single log could not be decoded or enriched; the log is dropped."""


class SubscriptionError(JarWatchError):
    """The push subscription failed (connect, subscribe, or stream)."""


class ActionExecutionError(JarWatchError):
    """A recovery action's submission or confirmation failed."""


class NothingToRecoverError(ActionExecutionError):
    """Quick recovery found no unaccounted balance to recover."""


class HealthCheckError(JarWatchError):
    """Reading health inputs failed; converted into an unhealthy JarHealth."""


class SignerRequiredError(JarWatchError):
    """A state-changing operation was requested without write credentials."""


class WatcherStateError(JarWatchError):
    """A watcher lifecycle precondition was violated (e.g. start while active)."""
