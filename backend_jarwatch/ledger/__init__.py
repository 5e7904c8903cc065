"""
Ledger access package.

External interfaces to an EVM node: JSON-RPC reads (httpx), locally signed
writes (eth-account), WebSocket log subscriptions (websockets), ABI helpers,
and the jar contract bindings, bundled into a LedgerClient.
"""

from backend_jarwatch.ledger.client import LedgerClient
from backend_jarwatch.ledger.contracts import JarContract
from backend_jarwatch.ledger.models import BlockInfo, LogFilter, RawLog, TransactionInfo, TransactionReceipt
from backend_jarwatch.ledger.rpc import JsonRpcClient, LedgerReader
from backend_jarwatch.ledger.signer import LedgerWriter, PendingTransaction
from backend_jarwatch.ledger.subscription import LogSubscriber

__all__ = [
    "BlockInfo",
    "JarContract",
    "JsonRpcClient",
    "LedgerClient",
    "LedgerReader",
    "LedgerWriter",
    "LogFilter",
    "LogSubscriber",
    "PendingTransaction",
    "RawLog",
    "TransactionInfo",
    "TransactionReceipt",
]
