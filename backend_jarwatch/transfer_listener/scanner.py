"""
Historical log scanner and transfer classifier.

Fetches ERC-20 Transfer logs whose recipient is the jar over a block range,
enriches each with token metadata and transaction context (concurrently), and
classifies it as direct-to-token vs routed-through-the-jar. Read-only; for a
finalized range the result is deterministic.
"""

from __future__ import annotations

import asyncio
from typing import Any

from backend_jarwatch.core.exceptions import LogProcessingError, ScanError
from backend_jarwatch.jarwatch_logging import get_logger, short_hash
from backend_jarwatch.ledger import abi
from backend_jarwatch.ledger.models import LogFilter, RawLog
from backend_jarwatch.transfer_listener.models import DetectedTransfer

logger = get_logger(__name__)

LATEST = "latest"
UNKNOWN_SYMBOL = "UNKNOWN"
DEFAULT_DECIMALS = 18


def classify_transfer(tx_to: str | None, token: str, jar_address: str) -> tuple[bool, bool]:
    """
    Return (is_direct_transfer, is_jar_call) for a transaction target.

    Direct: the transaction called the token contract (plain transfer()).
    Jar call: the transaction called the jar (its own deposit path).
    Anything else (router, multisig, contract creation) is neither.
    """
    return abi.same_address(tx_to, token), abi.same_address(tx_to, jar_address)


def jar_transfer_topics(jar_address: str) -> list[str | None]:
    """Topics filter: Transfer(any sender → jar)."""
    return [abi.TRANSFER_TOPIC, None, abi.address_topic(jar_address)]


class LogScanner:
    """
    Scans Transfer logs addressed to one jar.

    `reader` provides get_logs, get_transaction, get_transaction_receipt,
    get_block, get_token_symbol and get_token_decimals (see ledger.rpc.LedgerReader).
    """

    def __init__(self, reader: Any, jar_address: str) -> None:
        if not jar_address:
            raise ValueError("jar_address must be non-empty")
        self._reader = reader
        self._jar_address = jar_address
        self._token_meta: dict[str, tuple[str, int]] = {}

    @property
    def jar_address(self) -> str:
        return self._jar_address

    def log_filter(self, from_block: int | str | None = None, to_block: int | str | None = None) -> LogFilter:
        return LogFilter(
            topics=jar_transfer_topics(self._jar_address),
            from_block=from_block,
            to_block=to_block,
        )

    async def scan_block_range(
        self,
        from_block: int,
        to_block: int | str = LATEST,
    ) -> list[DetectedTransfer]:
        """
        Return transfers into the jar within [from_block, to_block], ordered by
        (block_number, log_index) and unique by (transaction_hash, log_index).

        Logs that fail to decode or enrich are logged and dropped. Raises
        ScanError when the range query itself fails.
        """
        if from_block < 0:
            raise ValueError("from_block must be >= 0")
        if isinstance(to_block, str):
            if to_block != LATEST:
                raise ValueError(f"to_block must be a block number or {LATEST!r}")
        elif to_block < from_block:
            raise ValueError("to_block must be >= from_block")

        try:
            logs = await self._reader.get_logs(self.log_filter(from_block, to_block))
        except Exception as e:
            logger.error(
                "scanner_range_query_failed",
                jar_address=self._jar_address,
                from_block=from_block,
                to_block=to_block,
                error=str(e),
            )
            raise ScanError(
                f"Failed to scan blocks {from_block}-{to_block}: {e}",
                from_block=from_block,
                to_block=to_block,
            ) from e

        in_range = [
            log
            for log in logs
            if not log.removed
            and log.block_number >= from_block
            and (isinstance(to_block, str) or log.block_number <= to_block)
        ]
        if len(in_range) != len(logs):
            logger.warning(
                "scanner_logs_discarded",
                jar_address=self._jar_address,
                discarded=len(logs) - len(in_range),
                from_block=from_block,
                to_block=to_block,
            )

        processed = await asyncio.gather(*(self.process_log(log) for log in in_range))

        transfers: dict[tuple[str, int], DetectedTransfer] = {}
        for transfer in processed:
            if transfer is not None and transfer.key not in transfers:
                transfers[transfer.key] = transfer
        result = sorted(transfers.values(), key=lambda t: (t.block_number, t.log_index))
        logger.info(
            "scanner_range_scanned",
            jar_address=self._jar_address,
            from_block=from_block,
            to_block=to_block,
            log_count=len(logs),
            transfer_count=len(result),
        )
        return result

    async def process_log(self, log: RawLog) -> DetectedTransfer | None:
        """Decode and enrich one Transfer log; None (logged) on any failure."""
        try:
            return await self._build_transfer(log)
        except Exception as e:
            logger.warning(
                "scanner_log_processing_failed",
                jar_address=self._jar_address,
                transaction_hash=short_hash(log.transaction_hash, 18),
                log_index=log.log_index,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def _build_transfer(self, log: RawLog) -> DetectedTransfer:
        decoded = abi.decode_transfer_log(log)
        if not abi.same_address(decoded.recipient, self._jar_address):
            raise LogProcessingError(
                f"Transfer recipient {decoded.recipient} is not the jar {self._jar_address}"
            )

        (symbol, decimals), (tx, receipt, block) = await asyncio.gather(
            self._token_metadata(log.address),
            asyncio.gather(
                self._reader.get_transaction(log.transaction_hash),
                self._reader.get_transaction_receipt(log.transaction_hash),
                self._reader.get_block(log.block_number),
            ),
        )
        is_direct, is_jar_call = classify_transfer(tx.to, log.address, self._jar_address)

        return DetectedTransfer(
            token=log.address,
            token_symbol=symbol,
            token_decimals=decimals,
            sender=decoded.sender,
            amount=decoded.value,
            amount_formatted=abi.format_units(decoded.value, decimals),
            block_number=log.block_number,
            timestamp=block.timestamp,
            transaction_hash=log.transaction_hash,
            log_index=log.log_index,
            is_direct_transfer=is_direct,
            is_jar_call=is_jar_call,
            gas_used=receipt.gas_used if receipt is not None else None,
            gas_price=tx.gas_price,
        )

    async def _token_metadata(self, token: str) -> tuple[str, int]:
        """(symbol, decimals) with UNKNOWN/18 fallbacks; cached once both lookups succeed."""
        cached = self._token_meta.get(token.lower())
        if cached is not None:
            return cached
        symbol_res, decimals_res = await asyncio.gather(
            self._reader.get_token_symbol(token),
            self._reader.get_token_decimals(token),
            return_exceptions=True,
        )
        symbol = UNKNOWN_SYMBOL if isinstance(symbol_res, BaseException) else str(symbol_res)
        decimals = DEFAULT_DECIMALS if isinstance(decimals_res, BaseException) else int(decimals_res)
        if isinstance(symbol_res, BaseException) or isinstance(decimals_res, BaseException):
            logger.debug(
                "scanner_token_metadata_fallback",
                token=token,
                symbol_error=str(symbol_res) if isinstance(symbol_res, BaseException) else None,
                decimals_error=str(decimals_res) if isinstance(decimals_res, BaseException) else None,
            )
        else:
            self._token_meta[token.lower()] = (symbol, decimals)
        return symbol, decimals
