"""
Tests for ledger.rpc: JSON-RPC request/retry behavior and typed reads.

The HTTP layer is replaced with httpx.MockTransport; no node is contacted.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from eth_abi import encode

from backend_jarwatch.config.settings import MonitoringConfig
from backend_jarwatch.core.exceptions import LedgerRpcError
from backend_jarwatch.ledger import abi
from backend_jarwatch.ledger.models import LogFilter
from backend_jarwatch.ledger.rpc import JsonRpcClient, LedgerReader

from conftest import JAR, TOKEN_A, tx_hash

RPC_URL = "https://rpc.example.test"
FAST = MonitoringConfig(max_retries=3, min_retry_delay_sec=0.0)


def _client(handler, config=FAST) -> JsonRpcClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return JsonRpcClient(RPC_URL, config=config, http_client=http)


def _ok(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def test_request_returns_result():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return _ok(request, "0x10")

    reader = LedgerReader(_client(handler))

    assert asyncio.run(reader.get_block_number()) == 16
    assert seen[0]["method"] == "eth_blockNumber"
    assert seen[0]["params"] == []


def test_rpc_error_object_is_not_retried():
    """An RPC error (e.g. execution reverted) raises immediately after one call."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": 3, "message": "execution reverted"}},
        )

    with pytest.raises(LedgerRpcError) as exc:
        asyncio.run(_client(handler).request("eth_call", [{}, "latest"]))

    assert len(calls) == 1
    assert exc.value.code == 3
    assert exc.value.method == "eth_call"
    assert "execution reverted" in str(exc.value)


def test_http_failure_retried_then_succeeds():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(500, text="upstream error")
        return _ok(request, "0x1")

    assert asyncio.run(_client(handler).request("eth_chainId")) == "0x1"
    assert len(calls) == 3


def test_transport_failure_gives_up_after_max_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LedgerRpcError, match="after 3 attempts"):
        asyncio.run(_client(handler).request("eth_blockNumber"))
    assert len(calls) == 3


def test_empty_rpc_url_rejected():
    with pytest.raises(ValueError):
        JsonRpcClient("  ")


def test_get_logs_parses_items_and_sends_filter():
    params = []
    item = {
        "address": TOKEN_A,
        "topics": [abi.TRANSFER_TOPIC, abi.address_topic(TOKEN_A), abi.address_topic(JAR)],
        "data": "0x" + (5).to_bytes(32, "big").hex(),
        "blockNumber": "0x64",
        "transactionHash": tx_hash(7),
        "logIndex": "0x2",
    }

    def handler(request: httpx.Request) -> httpx.Response:
        params.append(json.loads(request.content)["params"])
        return _ok(request, [item])

    reader = LedgerReader(_client(handler))
    log_filter = LogFilter(topics=[abi.TRANSFER_TOPIC, None, abi.address_topic(JAR)], from_block=100, to_block="latest")

    logs = asyncio.run(reader.get_logs(log_filter))

    assert params[0] == [
        {"topics": [abi.TRANSFER_TOPIC, None, abi.address_topic(JAR)], "fromBlock": "0x64", "toBlock": "latest"}
    ]
    assert len(logs) == 1
    assert logs[0].block_number == 100
    assert logs[0].log_index == 2
    assert logs[0].removed is False


def test_missing_transaction_raises():
    reader = LedgerReader(_client(lambda request: _ok(request, None)))
    with pytest.raises(LedgerRpcError, match="Transaction not found"):
        asyncio.run(reader.get_transaction(tx_hash(1)))


def test_pending_receipt_is_none():
    reader = LedgerReader(_client(lambda request: _ok(request, None)))
    assert asyncio.run(reader.get_transaction_receipt(tx_hash(1))) is None


def test_token_symbol_string_and_bytes32():
    """symbol() decodes both the ABI string form and the legacy bytes32 form."""
    responses = [
        "0x" + encode(["string"], ["TKA"]).hex(),
        "0x" + b"MKR".ljust(32, b"\x00").hex(),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["params"][0]["data"] == abi.encode_call(abi.ERC20_SYMBOL)
        return _ok(request, responses.pop(0))

    reader = LedgerReader(_client(handler))

    async def run():
        return await reader.get_token_symbol(TOKEN_A), await reader.get_token_symbol(TOKEN_A)

    assert asyncio.run(run()) == ("TKA", "MKR")


def test_token_decimals():
    reader = LedgerReader(_client(lambda request: _ok(request, "0x" + encode(["uint8"], [6]).hex())))
    assert asyncio.run(reader.get_token_decimals(TOKEN_A)) == 6
