"""
Data models for jar analysis results.

JarAnalysis aggregates a scanned transfer set; AnomalyReport and
Recommendations are derived from it. All are recomputed on demand, never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from backend_jarwatch.transfer_listener.models import DetectedTransfer


@dataclass(frozen=True)
class TimeRange:
    earliest: int
    latest: int


@dataclass
class JarAnalysis:
    """
    Aggregate over one block range.

    time_range is None when no transfers were found; callers must handle it.
    """

    jar_address: str
    total_transfers: int
    direct_transfers: list[DetectedTransfer]
    jar_call_transfers: list[DetectedTransfer]
    suspicious_transfers: list[DetectedTransfer]
    total_value: int
    unique_tokens: list[str]
    time_range: TimeRange | None
    transfers: list[DetectedTransfer] = field(default_factory=list)
    """The full scanned set the partitions were taken from."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "jar_address": self.jar_address,
            "total_transfers": self.total_transfers,
            "direct_transfers": [t.to_dict() for t in self.direct_transfers],
            "jar_call_transfers": [t.to_dict() for t in self.jar_call_transfers],
            "suspicious_transfers": [t.to_dict() for t in self.suspicious_transfers],
            "total_value": str(self.total_value),
            "unique_tokens": list(self.unique_tokens),
            "time_range": (
                {"earliest": self.time_range.earliest, "latest": self.time_range.latest}
                if self.time_range
                else None
            ),
        }


@dataclass
class SenderStats:
    address: str
    count: int
    total_amount: int


@dataclass
class AnomalyReport:
    """Pattern findings over a transfer set. Every list may be empty."""

    high_value_transfers: list[DetectedTransfer]
    frequent_senders: list[SenderStats]
    """Senders with more than one transfer, most frequent first."""
    unusual_tokens: list[str]
    gas_anomalies: list[DetectedTransfer]

    @property
    def has_findings(self) -> bool:
        return bool(
            self.high_value_transfers
            or self.frequent_senders
            or self.unusual_tokens
            or self.gas_anomalies
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "high_value_transfers": [t.to_dict() for t in self.high_value_transfers],
            "frequent_senders": [
                {"address": s.address, "count": s.count, "total_amount": str(s.total_amount)}
                for s in self.frequent_senders
            ],
            "unusual_tokens": list(self.unusual_tokens),
            "gas_anomalies": [t.to_dict() for t in self.gas_anomalies],
        }


@dataclass
class Recommendations:
    immediate: list[str] = field(default_factory=list)
    suggested: list[str] = field(default_factory=list)
    monitoring: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "immediate": list(self.immediate),
            "suggested": list(self.suggested),
            "monitoring": list(self.monitoring),
        }
