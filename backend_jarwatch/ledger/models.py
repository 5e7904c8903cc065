"""
Data models for raw ledger (EVM JSON-RPC) payloads.

Each model mirrors the RPC response fields needed by the scanner and the
recovery planner, and is built from a JSON-RPC result object via from_rpc_item().
Quantities arrive hex-encoded ("0x1a"); they are normalized to int here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def hex_to_int(value: Any) -> int:
    """Parse a JSON-RPC quantity ("0x1a", int, or decimal string) into int."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s.startswith(("0x", "0X")):
            return int(s, 16) if len(s) > 2 else 0
        return int(s)
    raise TypeError(f"Cannot parse quantity from {value!r}")


def _optional_int(value: Any) -> int | None:
    return None if value is None else hex_to_int(value)


@dataclass(frozen=True)
class RawLog:
    """
    One log entry from eth_getLogs or an eth_subscription notification.

    Topics and data stay hex strings; decoding happens in ledger.abi.
    """

    address: str
    topics: tuple[str, ...]
    data: str
    block_number: int
    transaction_hash: str
    log_index: int
    removed: bool = False

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "RawLog":
        """Build from a single log object; raises KeyError/TypeError/ValueError on malformed input."""
        return cls(
            address=item["address"],
            topics=tuple(item.get("topics") or ()),
            data=item.get("data") or "0x",
            block_number=hex_to_int(item["blockNumber"]),
            transaction_hash=item["transactionHash"],
            log_index=hex_to_int(item["logIndex"]),
            removed=bool(item.get("removed", False)),
        )


@dataclass(frozen=True)
class TransactionInfo:
    """Subset of eth_getTransactionByHash used for classification."""

    hash: str
    sender: str
    to: str | None
    """Target address; None for contract creation."""
    gas_price: int | None
    block_number: int | None

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "TransactionInfo":
        return cls(
            hash=item["hash"],
            sender=item["from"],
            to=item.get("to"),
            gas_price=_optional_int(item.get("gasPrice")),
            block_number=_optional_int(item.get("blockNumber")),
        )


@dataclass(frozen=True)
class TransactionReceipt:
    """Subset of eth_getTransactionReceipt."""

    transaction_hash: str
    status: int
    """1 = success, 0 = reverted."""
    gas_used: int
    block_number: int
    effective_gas_price: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "TransactionReceipt":
        return cls(
            transaction_hash=item["transactionHash"],
            status=hex_to_int(item.get("status", "0x1")),
            gas_used=hex_to_int(item["gasUsed"]),
            block_number=hex_to_int(item["blockNumber"]),
            effective_gas_price=_optional_int(item.get("effectiveGasPrice")),
        )


@dataclass(frozen=True)
class BlockInfo:
    """Subset of eth_getBlockByNumber (header only)."""

    number: int
    timestamp: int
    hash: str | None = None

    @classmethod
    def from_rpc_item(cls, item: dict[str, Any]) -> "BlockInfo":
        return cls(
            number=hex_to_int(item["number"]),
            timestamp=hex_to_int(item["timestamp"]),
            hash=item.get("hash"),
        )


@dataclass
class LogFilter:
    """eth_getLogs / eth_subscribe("logs") filter."""

    topics: list[str | None]
    address: str | list[str] | None = None
    from_block: int | str | None = None
    to_block: int | str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_rpc_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"topics": list(self.topics)}
        if self.address is not None:
            params["address"] = self.address
        if self.from_block is not None:
            params["fromBlock"] = block_param(self.from_block)
        if self.to_block is not None:
            params["toBlock"] = block_param(self.to_block)
        params.update(self.extra)
        return params


def block_param(block: int | str) -> str:
    """Encode a block number or tag ("latest") as a JSON-RPC block parameter."""
    if isinstance(block, int):
        return hex(block)
    return block

