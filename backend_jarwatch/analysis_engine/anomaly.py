"""
Rule-based anomaly detection over a transfer set.

Flags high-value transfers, repeat senders, tokens outside the allow-list,
and gas usage far from the set's norm. Deterministic; thresholds are
module constants so each finding can be explained.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from backend_jarwatch.analysis_engine.models import AnomalyReport, SenderStats
from backend_jarwatch.config.settings import DEFAULT_TOKEN_ALLOW_LIST
from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.transfer_listener.models import DetectedTransfer

logger = get_logger(__name__)

# Top fraction of transfers (by amount) reported as high value
HIGH_VALUE_FRACTION = 0.1
# Gas used above this multiple of the set mean is anomalous
GAS_MEAN_MULTIPLIER = 3
# Intrinsic gas of the cheapest possible transaction
MIN_TRANSFER_GAS = 21_000


def _high_value_transfers(transfers: Sequence[DetectedTransfer]) -> list[DetectedTransfer]:
    count = int(len(transfers) * HIGH_VALUE_FRACTION)
    if count == 0:
        return []
    # sorted() is stable: equal amounts keep input order
    return sorted(transfers, key=lambda t: -t.amount)[:count]


def _frequent_senders(transfers: Iterable[DetectedTransfer]) -> list[SenderStats]:
    stats: dict[str, SenderStats] = {}
    for t in transfers:
        entry = stats.get(t.sender)
        if entry is None:
            stats[t.sender] = SenderStats(address=t.sender, count=1, total_amount=t.amount)
        else:
            entry.count += 1
            entry.total_amount += t.amount
    repeat = [s for s in stats.values() if s.count > 1]
    return sorted(repeat, key=lambda s: -s.count)


def _unusual_tokens(transfers: Iterable[DetectedTransfer], allow_list: Iterable[str]) -> list[str]:
    known = {a.lower() for a in allow_list}
    seen: set[str] = set()
    unusual: list[str] = []
    for t in transfers:
        key = t.token.lower()
        if key in seen:
            continue
        seen.add(key)
        if key not in known:
            unusual.append(t.token)
    return unusual


def _gas_anomalies(transfers: Sequence[DetectedTransfer]) -> list[DetectedTransfer]:
    """Mean is over transfers with gas_used set, not over the whole set."""
    with_gas = [t for t in transfers if t.gas_used is not None]
    if not with_gas:
        return []
    total = sum(t.gas_used for t in with_gas)  # type: ignore[misc]
    n = len(with_gas)
    return [
        t
        for t in with_gas
        # gas > 3 * (total / n), compared without division
        if t.gas_used * n > GAS_MEAN_MULTIPLIER * total or t.gas_used < MIN_TRANSFER_GAS  # type: ignore[operator]
    ]


def detect_anomalies(
    transfers: Sequence[DetectedTransfer],
    *,
    token_allow_list: Iterable[str] | None = None,
) -> AnomalyReport:
    """
    Detect patterns in a transfer set.

    - high_value_transfers: top 10% by descending amount (floor), ties in input order.
    - frequent_senders: senders with count > 1, sorted by descending count.
    - unusual_tokens: distinct tokens not in the allow-list (case-insensitive).
    - gas_anomalies: gas used > 3x the mean gas, or < 21000. The mean is taken
      over transfers that report gas_used only; transfers without a receipt
      are neither averaged in nor flagged.
    """
    allow = DEFAULT_TOKEN_ALLOW_LIST if token_allow_list is None else token_allow_list
    report = AnomalyReport(
        high_value_transfers=_high_value_transfers(transfers),
        frequent_senders=_frequent_senders(transfers),
        unusual_tokens=_unusual_tokens(transfers, allow),
        gas_anomalies=_gas_anomalies(transfers),
    )
    if report.has_findings:
        logger.info(
            "anomalies_detected",
            transfer_count=len(transfers),
            high_value=len(report.high_value_transfers),
            frequent_senders=len(report.frequent_senders),
            unusual_tokens=len(report.unusual_tokens),
            gas_anomalies=len(report.gas_anomalies),
        )
    return report
