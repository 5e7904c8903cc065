"""
Analysis engine: aggregates scanned transfers into a JarAnalysis and derives
anomaly findings and recommendations from it.
"""

from __future__ import annotations

from typing import Sequence

from backend_jarwatch.analysis_engine.anomaly import detect_anomalies
from backend_jarwatch.analysis_engine.models import (
    AnomalyReport,
    JarAnalysis,
    Recommendations,
    TimeRange,
)
from backend_jarwatch.analysis_engine.recommendations import generate_recommendations
from backend_jarwatch.config.settings import MonitoringConfig
from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.transfer_listener.models import DetectedTransfer
from backend_jarwatch.transfer_listener.scanner import LATEST, LogScanner

logger = get_logger(__name__)

# Transfers above this gas usage are flagged suspicious
SUSPICIOUS_GAS_THRESHOLD = 500_000


def is_suspicious(transfer: DetectedTransfer) -> bool:
    gas_used = transfer.gas_used or 0
    return gas_used > SUSPICIOUS_GAS_THRESHOLD or transfer.amount == 0


def distinct_tokens(transfers: Sequence[DetectedTransfer]) -> list[str]:
    """Distinct token addresses in first-seen order, compared case-insensitively."""
    seen: set[str] = set()
    tokens: list[str] = []
    for t in transfers:
        if t.token.lower() not in seen:
            seen.add(t.token.lower())
            tokens.append(t.token)
    return tokens


def summarize_transfers(jar_address: str, transfers: Sequence[DetectedTransfer]) -> JarAnalysis:
    """Build a JarAnalysis from an already-scanned transfer set."""
    transfers = list(transfers)
    time_range = None
    if transfers:
        timestamps = [t.timestamp for t in transfers]
        time_range = TimeRange(earliest=min(timestamps), latest=max(timestamps))
    return JarAnalysis(
        jar_address=jar_address,
        total_transfers=len(transfers),
        direct_transfers=[t for t in transfers if t.is_direct_transfer],
        jar_call_transfers=[t for t in transfers if t.is_jar_call],
        suspicious_transfers=[t for t in transfers if is_suspicious(t)],
        total_value=sum(t.amount for t in transfers),
        unique_tokens=distinct_tokens(transfers),
        time_range=time_range,
        transfers=transfers,
    )


class AnalysisEngine:
    """Runs scans through a LogScanner and aggregates the results."""

    def __init__(self, scanner: LogScanner, config: MonitoringConfig | None = None) -> None:
        self._scanner = scanner
        self._config = config or MonitoringConfig()

    @property
    def scanner(self) -> LogScanner:
        return self._scanner

    async def analyze_jar(self, from_block: int = 0, to_block: int | str = LATEST) -> JarAnalysis:
        transfers = await self._scanner.scan_block_range(from_block, to_block)
        analysis = summarize_transfers(self._scanner.jar_address, transfers)
        logger.info(
            "jar_analyzed",
            jar_address=analysis.jar_address,
            from_block=from_block,
            to_block=to_block,
            total_transfers=analysis.total_transfers,
            direct_transfers=len(analysis.direct_transfers),
            suspicious_transfers=len(analysis.suspicious_transfers),
            unique_tokens=len(analysis.unique_tokens),
        )
        return analysis

    def detect_anomalies(self, transfers: Sequence[DetectedTransfer]) -> AnomalyReport:
        return detect_anomalies(transfers, token_allow_list=self._config.token_allow_list)

    def generate_recommendations(self, analysis: JarAnalysis) -> Recommendations:
        return generate_recommendations(analysis)
