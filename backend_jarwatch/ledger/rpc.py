"""
EVM JSON-RPC read interface.

Responsibilities:
- POST JSON-RPC requests over httpx with a per-request timeout.
- Retry transport failures with bounded exponential backoff; never retry an
  RPC error object (deterministic failures such as reverts).
- Expose typed reads used by the scanner and recovery planner: block height,
  logs, transactions, receipts, blocks, eth_call, gas price, token metadata.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

import httpx

from backend_jarwatch.config.settings import MonitoringConfig
from backend_jarwatch.core.exceptions import LedgerRpcError
from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.ledger import abi
from backend_jarwatch.ledger.models import (
    BlockInfo,
    LogFilter,
    RawLog,
    TransactionInfo,
    TransactionReceipt,
    block_param,
    hex_to_int,
)

logger = get_logger(__name__)


class JsonRpcClient:
    """
    Minimal async JSON-RPC 2.0 client for one HTTP endpoint.

    Pass an existing httpx.AsyncClient (e.g. with httpx.MockTransport in tests);
    otherwise one is created lazily and closed by aclose().
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        config: MonitoringConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip()
        self._config = config or MonitoringConfig()
        self._client = http_client
        self._owns_client = http_client is None
        self._ids = itertools.count(1)

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.request_timeout_sec)
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        """
        Perform one JSON-RPC call and return its "result".

        Transport errors and HTTP status errors are retried up to
        config.max_retries attempts with exponential backoff; an RPC error
        object raises LedgerRpcError immediately.
        """
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        delay = self._config.min_retry_delay_sec
        attempts = self._config.max_retries
        for attempt in range(attempts):
            try:
                resp = await self._get_client().post(self._rpc_url, json=body)
                resp.raise_for_status()
                data = resp.json()
                break
            except (httpx.TransportError, httpx.HTTPStatusError, ValueError) as e:
                if attempt + 1 >= attempts:
                    logger.error(
                        "ledger_rpc_give_up",
                        method=method,
                        max_retries=attempts,
                        error=str(e),
                    )
                    raise LedgerRpcError(
                        f"{method} failed after {attempts} attempts: {e}", method=method
                    ) from e
                logger.warning(
                    "ledger_rpc_retry",
                    method=method,
                    attempt=attempt + 1,
                    max_retries=attempts,
                    backoff_sec=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._config.max_retry_delay_sec)

        if "error" in data and data["error"] is not None:
            err = data["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            code = err.get("code") if isinstance(err, dict) else None
            raise LedgerRpcError(f"RPC error in {method}: {message} (code={code})", method=method, code=code)
        return data.get("result")


class LedgerReader:
    """Typed read operations over a JsonRpcClient."""

    def __init__(self, rpc: JsonRpcClient) -> None:
        self._rpc = rpc

    @property
    def rpc(self) -> JsonRpcClient:
        return self._rpc

    async def get_block_number(self) -> int:
        return hex_to_int(await self._rpc.request("eth_blockNumber"))

    async def get_chain_id(self) -> int:
        return hex_to_int(await self._rpc.request("eth_chainId"))

    async def get_gas_price(self) -> int:
        return hex_to_int(await self._rpc.request("eth_gasPrice"))

    async def get_logs(self, log_filter: LogFilter) -> list[RawLog]:
        result = await self._rpc.request("eth_getLogs", [log_filter.to_rpc_params()])
        if not isinstance(result, list):
            raise LedgerRpcError("eth_getLogs returned a non-list result", method="eth_getLogs")
        return [RawLog.from_rpc_item(item) for item in result]

    async def get_transaction(self, tx_hash: str) -> TransactionInfo:
        result = await self._rpc.request("eth_getTransactionByHash", [tx_hash])
        if result is None:
            raise LedgerRpcError(f"Transaction not found: {tx_hash}", method="eth_getTransactionByHash")
        return TransactionInfo.from_rpc_item(result)

    async def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        """Receipt, or None while the transaction is still pending."""
        result = await self._rpc.request("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None
        return TransactionReceipt.from_rpc_item(result)

    async def get_block(self, block: int | str) -> BlockInfo:
        result = await self._rpc.request("eth_getBlockByNumber", [block_param(block), False])
        if result is None:
            raise LedgerRpcError(f"Block not found: {block}", method="eth_getBlockByNumber")
        return BlockInfo.from_rpc_item(result)

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return hex_to_int(await self._rpc.request("eth_getTransactionCount", [address, block]))

    async def call(self, to: str, data: str, *, sender: str | None = None, block: int | str = "latest") -> str:
        """eth_call; returns hex-encoded return data."""
        tx: dict[str, Any] = {"to": to, "data": data}
        if sender:
            tx["from"] = sender
        result = await self._rpc.request("eth_call", [tx, block_param(block)])
        return result or "0x"

    async def estimate_gas(self, to: str, data: str, *, sender: str | None = None) -> int:
        tx: dict[str, Any] = {"to": to, "data": data}
        if sender:
            tx["from"] = sender
        return hex_to_int(await self._rpc.request("eth_estimateGas", [tx]))

    async def send_raw_transaction(self, raw_tx: str) -> str:
        return await self._rpc.request("eth_sendRawTransaction", [raw_tx])

    async def get_token_symbol(self, token: str) -> str:
        return abi.decode_symbol(await self.call(token, abi.encode_call(abi.ERC20_SYMBOL)))

    async def get_token_decimals(self, token: str) -> int:
        return int(abi.decode_single("uint8", await self.call(token, abi.encode_call(abi.ERC20_DECIMALS))))
