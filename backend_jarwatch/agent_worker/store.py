"""
In-memory transfer store.

Holds every transfer seen by scans and monitoring sessions, keyed by
(transaction_hash, log_index). Nothing is persisted.
"""

from __future__ import annotations

import time
from typing import Any, Iterable

from backend_jarwatch.transfer_listener.models import DetectedTransfer, TransferKey


class TransferStore:
    def __init__(self) -> None:
        self._transfers: dict[TransferKey, DetectedTransfer] = {}

    def __len__(self) -> int:
        return len(self._transfers)

    def add(self, transfer: DetectedTransfer) -> bool:
        """Insert transfer; False if its key is already stored."""
        if transfer.key in self._transfers:
            return False
        self._transfers[transfer.key] = transfer
        return True

    def extend(self, transfers: Iterable[DetectedTransfer]) -> int:
        return sum(1 for t in transfers if self.add(t))

    def clear(self) -> None:
        self._transfers.clear()

    def all(self) -> list[DetectedTransfer]:
        """All transfers ordered by (block_number, log_index)."""
        return sorted(self._transfers.values(), key=lambda t: (t.block_number, t.log_index))

    def get_direct_transfers(self) -> list[DetectedTransfer]:
        return [t for t in self.all() if t.is_direct_transfer]

    def get_token_transfers(self, token: str) -> list[DetectedTransfer]:
        token = token.lower()
        return [t for t in self.all() if t.token.lower() == token]

    def get_recent_transfers(self, window_hours: float = 24, *, now: float | None = None) -> list[DetectedTransfer]:
        """Transfers with timestamp strictly newer than now - window_hours."""
        cutoff = (time.time() if now is None else now) - window_hours * 3600
        return [t for t in self.all() if t.timestamp > cutoff]

    def stats(self) -> dict[str, Any]:
        transfers = self.all()
        direct = sum(1 for t in transfers if t.is_direct_transfer)
        return {
            "total_transfers": len(transfers),
            "direct_transfers": direct,
            "jar_call_transfers": sum(1 for t in transfers if t.is_jar_call),
            "unique_tokens": len({t.token.lower() for t in transfers}),
            "total_value": str(sum(t.amount for t in transfers)),
            "latest_block": transfers[-1].block_number if transfers else None,
        }
