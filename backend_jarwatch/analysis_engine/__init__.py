"""
Analysis engine package.

Aggregates scanned transfers (JarAnalysis), flags patterns (AnomalyReport)
and produces free-text guidance (Recommendations).
"""

from backend_jarwatch.analysis_engine.analyzer import (
    AnalysisEngine,
    is_suspicious,
    summarize_transfers,
)
from backend_jarwatch.analysis_engine.anomaly import detect_anomalies
from backend_jarwatch.analysis_engine.models import (
    AnomalyReport,
    JarAnalysis,
    Recommendations,
    SenderStats,
    TimeRange,
)
from backend_jarwatch.analysis_engine.recommendations import generate_recommendations

__all__ = [
    "AnalysisEngine",
    "AnomalyReport",
    "JarAnalysis",
    "Recommendations",
    "SenderStats",
    "TimeRange",
    "detect_anomalies",
    "generate_recommendations",
    "is_suspicious",
    "summarize_transfers",
]
