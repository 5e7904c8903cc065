"""
Data models for transfer listener output.

DetectedTransfer is the unit of work emitted by the scanner and the real-time
watcher to the analysis engine and monitoring sessions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

TransferKey = tuple[str, int]


@dataclass(frozen=True)
class DetectedTransfer:
    """
    One observed ERC-20 movement into the jar, enriched with token metadata
    and transaction context.

    is_direct_transfer and is_jar_call are computed independently: a transfer
    routed through a third-party contract has both False.
    """

    token: str
    token_symbol: str
    token_decimals: int
    sender: str
    amount: int
    """Amount in the token's smallest unit."""
    amount_formatted: str
    block_number: int
    timestamp: int
    """Block timestamp (Unix seconds)."""
    transaction_hash: str
    log_index: int
    is_direct_transfer: bool
    """Originating transaction targeted the token contract itself."""
    is_jar_call: bool
    """Originating transaction targeted the jar contract."""
    gas_used: int | None = None
    gas_price: int | None = None

    @property
    def key(self) -> TransferKey:
        """Identity: (transaction_hash, log_index); transaction hash compared lowercase."""
        return (self.transaction_hash.lower(), self.log_index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "token_symbol": self.token_symbol,
            "token_decimals": self.token_decimals,
            "sender": self.sender,
            "amount": str(self.amount),
            "amount_formatted": self.amount_formatted,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "transaction_hash": self.transaction_hash,
            "log_index": self.log_index,
            "is_direct_transfer": self.is_direct_transfer,
            "is_jar_call": self.is_jar_call,
            "gas_used": self.gas_used,
            "gas_price": self.gas_price,
        }
