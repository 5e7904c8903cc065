"""
EVM write interface bound to caller credentials.

Signs legacy (gasPrice) transactions locally with eth-account and submits them
with eth_sendRawTransaction. Every submission returns a PendingTransaction whose
wait() polls for the receipt with a bounded timeout.
"""

from __future__ import annotations

import asyncio
import time

from eth_account import Account
from eth_utils import to_checksum_address

from backend_jarwatch.config.settings import MonitoringConfig
from backend_jarwatch.core.exceptions import ActionExecutionError, LedgerRpcError
from backend_jarwatch.jarwatch_logging import get_logger, short_hash
from backend_jarwatch.ledger.models import TransactionReceipt
from backend_jarwatch.ledger.rpc import LedgerReader

logger = get_logger(__name__)

# Added on top of eth_estimateGas to absorb state drift between estimate and inclusion
GAS_LIMIT_MARGIN_PCT = 20


class PendingTransaction:
    """Handle for a submitted transaction; wait() resolves to its receipt."""

    def __init__(
        self,
        tx_hash: str,
        reader: LedgerReader,
        *,
        timeout_sec: float,
        poll_sec: float,
    ) -> None:
        self.tx_hash = tx_hash
        self._reader = reader
        self._timeout_sec = timeout_sec
        self._poll_sec = poll_sec

    def __repr__(self) -> str:
        return f"PendingTransaction({self.tx_hash})"

    async def wait(self) -> TransactionReceipt:
        """
        Poll eth_getTransactionReceipt until mined.

        Raises ActionExecutionError on revert (status 0) or when not mined
        within the confirmation timeout.
        """
        deadline = time.monotonic() + self._timeout_sec
        while True:
            receipt = await self._reader.get_transaction_receipt(self.tx_hash)
            if receipt is not None:
                if not receipt.succeeded:
                    raise ActionExecutionError(f"Transaction {self.tx_hash} reverted")
                return receipt
            if time.monotonic() >= deadline:
                raise ActionExecutionError(
                    f"Transaction {self.tx_hash} not confirmed within {self._timeout_sec:.0f}s"
                )
            await asyncio.sleep(self._poll_sec)


class LedgerWriter:
    """Submits state-changing calls signed with a local private key."""

    def __init__(
        self,
        reader: LedgerReader,
        private_key: str,
        *,
        config: MonitoringConfig | None = None,
        chain_id: int | None = None,
    ) -> None:
        self._reader = reader
        self._account = Account.from_key(private_key)
        self._config = config or MonitoringConfig()
        self._chain_id = chain_id
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self._account.address

    async def _resolve_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self._reader.get_chain_id()
        return self._chain_id

    async def send_transaction(self, to: str, data: str, *, gas: int | None = None) -> PendingTransaction:
        """
        Sign and submit a call to `to` with calldata `data`.

        Gas limit comes from eth_estimateGas (+margin); `gas` is the fallback
        when estimation fails. Serialized per writer so nonces never collide.
        """
        async with self._lock:
            try:
                estimated = await self._reader.estimate_gas(to, data, sender=self.address)
                gas_limit = estimated * (100 + GAS_LIMIT_MARGIN_PCT) // 100
            except LedgerRpcError as e:
                if gas is None:
                    raise ActionExecutionError(f"Gas estimation failed for call to {to}: {e}") from e
                logger.warning("writer_gas_estimate_failed", to=to, fallback_gas=gas, error=str(e))
                gas_limit = gas

            nonce, gas_price, chain_id = await asyncio.gather(
                self._reader.get_transaction_count(self.address, "pending"),
                self._reader.get_gas_price(),
                self._resolve_chain_id(),
            )
            tx = {
                "to": to_checksum_address(to),
                "data": data,
                "value": 0,
                "gas": gas_limit,
                "gasPrice": gas_price,
                "nonce": nonce,
                "chainId": chain_id,
            }
            signed = self._account.sign_transaction(tx)
            raw = "0x" + bytes(signed.raw_transaction).hex()
            try:
                tx_hash = await self._reader.send_raw_transaction(raw)
            except LedgerRpcError as e:
                raise ActionExecutionError(f"Submission to {to} failed: {e}") from e

        logger.info(
            "writer_transaction_submitted",
            to=to,
            transaction_hash=short_hash(tx_hash, 18),
            nonce=nonce,
            gas_limit=gas_limit,
            gas_price=gas_price,
        )
        return PendingTransaction(
            tx_hash,
            self._reader,
            timeout_sec=self._config.confirmation_timeout_sec,
            poll_sec=self._config.confirmation_poll_sec,
        )
