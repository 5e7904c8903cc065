"""
ABI helpers: event topics, call encoding, result decoding, unit formatting.

Purely structural; no RPC. Uses eth-abi for (de)serialization and eth-utils
for keccak / selectors / checksum addresses.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_utils import (
    decode_hex,
    encode_hex,
    function_signature_to_4byte_selector,
    keccak,
    to_checksum_address,
)

from backend_jarwatch.core.exceptions import LogProcessingError
from backend_jarwatch.ledger.models import RawLog

TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"
TRANSFER_TOPIC = encode_hex(keccak(text=TRANSFER_EVENT_SIGNATURE))

# ERC-20 views
ERC20_SYMBOL = "symbol()"
ERC20_DECIMALS = "decimals()"

# Jar views
JAR_GET_MONITORED_TOKENS = "getMonitoredTokens()"
JAR_MONITORED_TOKENS = "monitoredTokens(address)"
JAR_GET_UNACCOUNTED_BALANCE = "getUnaccountedBalance(address)"
JAR_GET_TOTAL_DETECTED_TRANSFERS = "getTotalDetectedTransfers()"
JAR_PENDING_TOKENS = "pendingTokens(address)"
JAR_GET_JAR_TOKEN_BALANCE = "getJarTokenBalance()"

# Jar state-changing calls
JAR_ENABLE_TOKEN_MONITORING = "enableTokenMonitoring(address)"
JAR_SCAN_TOKEN = "scanToken(address)"
JAR_SCAN_ALL_MONITORED_TOKENS = "scanAllMonitoredTokens()"
JAR_PROCESS_ALL_DETECTED_TRANSFERS = "processAllDetectedTransfers(address,uint256,address[])"
JAR_EMERGENCY_RECOVER = "emergencyRecover(address,uint256,uint256,address[])"
JAR_CONFIGURE_AUTO_PROCESSING = "configureAutoProcessing(address,bool,uint256,uint256,address[])"


@dataclass(frozen=True)
class DecodedTransfer:
    """Arguments of an ERC-20 Transfer event."""

    sender: str
    recipient: str
    value: int


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte topic (hexZeroPad equivalent), lowercase."""
    raw = address.lower().removeprefix("0x")
    if len(raw) != 40:
        raise ValueError(f"Not a 20-byte address: {address!r}")
    return "0x" + raw.rjust(64, "0")


def topic_to_address(topic: str) -> str:
    """Extract the checksummed address from an indexed address topic."""
    raw = topic.lower().removeprefix("0x")
    if len(raw) != 64:
        raise ValueError(f"Not a 32-byte topic: {topic!r}")
    return to_checksum_address("0x" + raw[-40:])


def same_address(a: str | None, b: str | None) -> bool:
    """Case-insensitive address equality; None never matches."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


def decode_transfer_log(log: RawLog) -> DecodedTransfer:
    """
    Decode an ERC-20 Transfer log (from, to indexed; value in data).

    Raises LogProcessingError when the log is not a standard Transfer event.
    """
    if len(log.topics) != 3 or log.topics[0].lower() != TRANSFER_TOPIC.lower():
        raise LogProcessingError(
            f"Log {log.transaction_hash}:{log.log_index} is not an ERC-20 Transfer"
        )
    try:
        (value,) = decode(["uint256"], decode_hex(log.data))
        return DecodedTransfer(
            sender=topic_to_address(log.topics[1]),
            recipient=topic_to_address(log.topics[2]),
            value=int(value),
        )
    except Exception as e:
        raise LogProcessingError(
            f"Failed to decode Transfer log {log.transaction_hash}:{log.log_index}: {e}"
        ) from e


def _arg_types(signature: str) -> list[str]:
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [t for t in inner.split(",") if t]


def encode_call(signature: str, *args: Any) -> str:
    """Encode calldata for a function signature, e.g. encode_call("scanToken(address)", token)."""
    types = _arg_types(signature)
    if len(types) != len(args):
        raise ValueError(f"{signature} expects {len(types)} args, got {len(args)}")
    selector = function_signature_to_4byte_selector(signature)
    return encode_hex(selector + encode(types, list(args)))


def decode_result(types: Sequence[str], data: str | bytes) -> tuple[Any, ...]:
    """Decode eth_call return data."""
    raw = decode_hex(data) if isinstance(data, str) else data
    return tuple(decode(list(types), raw))


def decode_single(type_str: str, data: str | bytes) -> Any:
    return decode_result([type_str], data)[0]


def decode_symbol(data: str | bytes) -> str:
    """Decode symbol() return: ABI string, or legacy bytes32 (e.g. MKR)."""
    raw = decode_hex(data) if isinstance(data, str) else data
    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    return str(decode(["string"], raw)[0])


def format_units(value: int, decimals: int) -> str:
    """
    Format an integer amount in base units as a decimal string.

    Always includes a fractional part: format_units(10**18, 18) == "1.0",
    format_units(1500000, 6) == "1.5".
    """
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    negative = value < 0
    whole, frac = divmod(abs(value), 10**decimals)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    out = f"{whole}.{frac_str or '0'}"
    return "-" + out if negative else out


def format_ether(value: int) -> str:
    return format_units(value, 18)


def parse_units(amount: str | int | Decimal, decimals: int) -> int:
    """Convert a human amount ("100", "1.5") into base units."""
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{amount} has more than {decimals} decimals")
    return int(scaled)


def parse_ether(amount: str | int | Decimal) -> int:
    return parse_units(amount, 18)
