"""
Typed bindings for the jar's transfer-detection ABI.

View functions go through LedgerReader.call; state-changing functions require a
LedgerWriter and return a PendingTransaction.
"""

from __future__ import annotations

from eth_utils import to_checksum_address

from backend_jarwatch.core.exceptions import SignerRequiredError
from backend_jarwatch.ledger import abi
from backend_jarwatch.ledger.rpc import LedgerReader
from backend_jarwatch.ledger.signer import LedgerWriter, PendingTransaction


class JarContract:
    """The monitored jar: on-chain detection bookkeeping and recovery entrypoints."""

    def __init__(self, address: str, reader: LedgerReader, writer: LedgerWriter | None = None) -> None:
        self.address = to_checksum_address(address)
        self._reader = reader
        self._writer = writer

    @property
    def has_signer(self) -> bool:
        return self._writer is not None

    async def _view(self, signature: str, *args: object) -> str:
        return await self._reader.call(self.address, abi.encode_call(signature, *args))

    # --- views ---

    async def get_monitored_tokens(self) -> list[str]:
        tokens = abi.decode_single("address[]", await self._view(abi.JAR_GET_MONITORED_TOKENS))
        return [to_checksum_address(t) for t in tokens]

    async def is_monitored(self, token: str) -> bool:
        return bool(abi.decode_single("bool", await self._view(abi.JAR_MONITORED_TOKENS, token)))

    async def get_unaccounted_balance(self, token: str) -> int:
        return int(abi.decode_single("uint256", await self._view(abi.JAR_GET_UNACCOUNTED_BALANCE, token)))

    async def get_pending_balance(self, token: str) -> int:
        return int(abi.decode_single("uint256", await self._view(abi.JAR_PENDING_TOKENS, token)))

    async def get_total_detected_transfers(self) -> int:
        return int(abi.decode_single("uint256", await self._view(abi.JAR_GET_TOTAL_DETECTED_TRANSFERS)))

    async def get_jar_token_balance(self) -> int:
        return int(abi.decode_single("uint256", await self._view(abi.JAR_GET_JAR_TOKEN_BALANCE)))

    async def get_token_symbol(self, token: str) -> str:
        return await self._reader.get_token_symbol(token)

    async def simulate_scan_token(self, token: str) -> bool:
        """callStatic scanToken: would a scan detect a new transfer?"""
        sender = self._writer.address if self._writer else None
        data = abi.encode_call(abi.JAR_SCAN_TOKEN, token)
        return bool(abi.decode_single("bool", await self._reader.call(self.address, data, sender=sender)))

    # --- state-changing ---

    def _require_writer(self) -> LedgerWriter:
        if self._writer is None:
            raise SignerRequiredError("Signer required for state changes")
        return self._writer

    async def _send(self, gas: int, signature: str, *args: object) -> PendingTransaction:
        writer = self._require_writer()
        return await writer.send_transaction(self.address, abi.encode_call(signature, *args), gas=gas)

    async def enable_token_monitoring(self, token: str, *, gas: int = 50_000) -> PendingTransaction:
        return await self._send(gas, abi.JAR_ENABLE_TOKEN_MONITORING, token)

    async def scan_token(self, token: str, *, gas: int = 100_000) -> PendingTransaction:
        return await self._send(gas, abi.JAR_SCAN_TOKEN, token)

    async def scan_all_monitored_tokens(self, *, gas: int = 100_000) -> PendingTransaction:
        return await self._send(gas, abi.JAR_SCAN_ALL_MONITORED_TOKENS)

    async def process_all_detected_transfers(
        self, token: str, min_out: int = 0, path: list[str] | None = None, *, gas: int = 150_000
    ) -> PendingTransaction:
        return await self._send(gas, abi.JAR_PROCESS_ALL_DETECTED_TRANSFERS, token, min_out, path or [])

    async def emergency_recover(
        self,
        token: str,
        amount: int = 0,
        min_out: int = 0,
        path: list[str] | None = None,
        *,
        gas: int = 200_000,
    ) -> PendingTransaction:
        return await self._send(gas, abi.JAR_EMERGENCY_RECOVER, token, amount, min_out, path or [])

    async def configure_auto_processing(
        self,
        token: str,
        enabled: bool,
        min_amount: int,
        max_slippage_bps: int,
        path: list[str] | None = None,
        *,
        gas: int = 120_000,
    ) -> PendingTransaction:
        return await self._send(
            gas, abi.JAR_CONFIGURE_AUTO_PROCESSING, token, enabled, min_amount, max_slippage_bps, path or []
        )
