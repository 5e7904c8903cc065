"""
Pytest fixtures for JarWatch tests. In-memory fakes stand in for the ledger so
tests run without an EVM node.
"""

from __future__ import annotations

from typing import Any

import pytest

from backend_jarwatch.core.exceptions import LedgerRpcError, SignerRequiredError
from backend_jarwatch.ledger import abi
from backend_jarwatch.ledger.models import (
    BlockInfo,
    LogFilter,
    RawLog,
    TransactionInfo,
    TransactionReceipt,
)
from backend_jarwatch.transfer_listener.models import DetectedTransfer

JAR = "0x" + "ab" * 20
TOKEN_A = "0x" + "a1" * 20
TOKEN_B = "0x" + "b2" * 20
SENDER = "0x" + "5e" * 20
OTHER_SENDER = "0x" + "6f" * 20
ROUTER = "0x" + "77" * 20
BASE_TIMESTAMP = 1_700_000_000


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def transfer_log(
    *,
    token: str = TOKEN_A,
    sender: str = SENDER,
    recipient: str = JAR,
    amount: int = 10**18,
    block: int = 100,
    tx: str | None = None,
    log_index: int = 0,
    removed: bool = False,
) -> RawLog:
    """Build an ERC-20 Transfer log as eth_getLogs would return it."""
    return RawLog(
        address=token,
        topics=(abi.TRANSFER_TOPIC, abi.address_topic(sender), abi.address_topic(recipient)),
        data="0x" + amount.to_bytes(32, "big").hex(),
        block_number=block,
        transaction_hash=tx or tx_hash(block * 1000 + log_index),
        log_index=log_index,
        removed=removed,
    )


def make_transfer(**overrides: Any) -> DetectedTransfer:
    """DetectedTransfer with sensible defaults; override any field by keyword."""
    fields: dict[str, Any] = {
        "token": TOKEN_A,
        "token_symbol": "TKA",
        "token_decimals": 18,
        "sender": SENDER,
        "amount": 10**18,
        "amount_formatted": "1.0",
        "block_number": 100,
        "timestamp": BASE_TIMESTAMP,
        "transaction_hash": tx_hash(1),
        "log_index": 0,
        "is_direct_transfer": True,
        "is_jar_call": False,
        "gas_used": 50_000,
        "gas_price": 10**9,
    }
    fields.update(overrides)
    if "amount_formatted" not in overrides:
        fields["amount_formatted"] = abi.format_units(fields["amount"], fields["token_decimals"])
    return DetectedTransfer(**fields)


class FakeLedgerReader:
    """
    In-memory LedgerReader. Register logs plus the transaction target for each
    log's hash; receipts default to 50k gas, blocks to 12s spacing.
    """

    def __init__(self, head: int = 1000) -> None:
        self.head = head
        self.logs: list[RawLog] = []
        self.tx_targets: dict[str, str | None] = {}
        self.gas_used: dict[str, int] = {}
        self.symbols: dict[str, str] = {TOKEN_A.lower(): "TKA", TOKEN_B.lower(): "TKB"}
        self.decimals: dict[str, int] = {TOKEN_A.lower(): 18, TOKEN_B.lower(): 6}
        self.gas_price = 10**9
        self.filters: list[LogFilter] = []
        self.fail_logs = False
        self.fail_block_number = False
        self.receipts: dict[str, TransactionReceipt | None] = {}

    def add_log(self, log: RawLog, *, tx_to: str | None, gas_used: int = 50_000) -> RawLog:
        self.logs.append(log)
        self.tx_targets[log.transaction_hash] = tx_to
        self.gas_used[log.transaction_hash] = gas_used
        return log

    async def get_block_number(self) -> int:
        if self.fail_block_number:
            raise LedgerRpcError("node unavailable", method="eth_blockNumber")
        return self.head

    async def get_gas_price(self) -> int:
        return self.gas_price

    async def get_logs(self, log_filter: LogFilter) -> list[RawLog]:
        self.filters.append(log_filter)
        if self.fail_logs:
            raise LedgerRpcError("eth_getLogs timed out", method="eth_getLogs")
        return list(self.logs)

    async def get_transaction(self, tx: str) -> TransactionInfo:
        if tx not in self.tx_targets:
            raise LedgerRpcError(f"Transaction not found: {tx}", method="eth_getTransactionByHash")
        return TransactionInfo(hash=tx, sender=SENDER, to=self.tx_targets[tx], gas_price=self.gas_price, block_number=None)

    async def get_transaction_receipt(self, tx: str) -> TransactionReceipt | None:
        if tx in self.receipts:
            return self.receipts[tx]
        return TransactionReceipt(transaction_hash=tx, status=1, gas_used=self.gas_used.get(tx, 50_000), block_number=1)

    async def get_block(self, block: int | str) -> BlockInfo:
        number = int(block) if not isinstance(block, str) else self.head
        return BlockInfo(number=number, timestamp=BASE_TIMESTAMP + number * 12)

    async def get_token_symbol(self, token: str) -> str:
        if token.lower() not in self.symbols:
            raise LedgerRpcError("execution reverted", method="eth_call")
        return self.symbols[token.lower()]

    async def get_token_decimals(self, token: str) -> int:
        if token.lower() not in self.decimals:
            raise LedgerRpcError("execution reverted", method="eth_call")
        return self.decimals[token.lower()]


class FakePending:
    def __init__(self, tx_hash: str, gas_used: int = 60_000, fail: Exception | None = None) -> None:
        self.tx_hash = tx_hash
        self._gas_used = gas_used
        self._fail = fail

    async def wait(self) -> TransactionReceipt:
        if self._fail is not None:
            raise self._fail
        return TransactionReceipt(transaction_hash=self.tx_hash, status=1, gas_used=self._gas_used, block_number=1)


class FakeJarContract:
    """JarContract stand-in; every state-changing call is recorded in `calls`."""

    def __init__(self, *, has_signer: bool = True) -> None:
        self.address = JAR
        self.has_signer = has_signer
        self.monitored: list[str] = []
        self.unaccounted: dict[str, int] = {}
        self.pending: dict[str, int] = {}
        self.total_detected = 0
        self.jar_token_balance = 0
        self.scan_detects = False
        self.calls: list[tuple[Any, ...]] = []
        self.fail_views = False
        self.fail_calls: set[str] = set()
        self._n = 0

    def _check_views(self) -> None:
        if self.fail_views:
            raise LedgerRpcError("connection refused", method="eth_call")

    async def get_monitored_tokens(self) -> list[str]:
        self._check_views()
        return list(self.monitored)

    async def is_monitored(self, token: str) -> bool:
        return token.lower() in {t.lower() for t in self.monitored}

    async def get_unaccounted_balance(self, token: str) -> int:
        return self.unaccounted.get(token, 0)

    async def get_pending_balance(self, token: str) -> int:
        return self.pending.get(token, 0)

    async def get_total_detected_transfers(self) -> int:
        self._check_views()
        return self.total_detected

    async def get_jar_token_balance(self) -> int:
        self._check_views()
        return self.jar_token_balance

    async def get_token_symbol(self, token: str) -> str:
        return {TOKEN_A.lower(): "TKA", TOKEN_B.lower(): "TKB"}.get(token.lower(), "UNKNOWN")

    async def simulate_scan_token(self, token: str) -> bool:
        return self.scan_detects

    async def _record(self, name: str, *args: Any, **kwargs: Any) -> FakePending:
        if not self.has_signer:
            raise SignerRequiredError("Signer required for state changes")
        self.calls.append((name, *args))
        if name in self.fail_calls:
            raise LedgerRpcError(f"{name} reverted", method="eth_sendRawTransaction")
        self._n += 1
        return FakePending(tx_hash(900 + self._n))

    async def enable_token_monitoring(self, token: str, **kwargs: Any) -> FakePending:
        pending = await self._record("enable_token_monitoring", token)
        self.monitored.append(token)
        return pending

    async def scan_token(self, token: str, **kwargs: Any) -> FakePending:
        return await self._record("scan_token", token)

    async def scan_all_monitored_tokens(self, **kwargs: Any) -> FakePending:
        return await self._record("scan_all_monitored_tokens")

    async def process_all_detected_transfers(self, token: str, min_out: int = 0, path: Any = None, **kwargs: Any) -> FakePending:
        return await self._record("process_all_detected_transfers", token, min_out)

    async def emergency_recover(self, token: str, amount: int = 0, min_out: int = 0, path: Any = None, **kwargs: Any) -> FakePending:
        return await self._record("emergency_recover", token, amount, min_out)

    async def configure_auto_processing(
        self, token: str, enabled: bool, min_amount: int, max_slippage_bps: int, path: Any = None, **kwargs: Any
    ) -> FakePending:
        return await self._record("configure_auto_processing", token, enabled, min_amount, max_slippage_bps)


class FakeScanner:
    """LogScanner stand-in returning a fixed transfer list."""

    def __init__(self, transfers: list[DetectedTransfer] | None = None, *, jar_address: str = JAR) -> None:
        self.jar_address = jar_address
        self.transfers = transfers or []
        self.fail: Exception | None = None
        self.calls: list[tuple[int, int | str]] = []

    async def scan_block_range(self, from_block: int, to_block: int | str = "latest") -> list[DetectedTransfer]:
        self.calls.append((from_block, to_block))
        if self.fail is not None:
            raise self.fail
        return list(self.transfers)


@pytest.fixture
def reader() -> FakeLedgerReader:
    return FakeLedgerReader()


@pytest.fixture
def jar() -> FakeJarContract:
    return FakeJarContract()
