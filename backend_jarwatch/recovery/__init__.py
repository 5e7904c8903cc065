"""
Recovery package.

Joins transfer analysis with on-chain jar state to plan and execute
recovery actions and to report jar health.
"""

from backend_jarwatch.recovery.models import (
    AutoRecoverOptions,
    AutoRecoverResult,
    FullAnalysis,
    JarHealth,
    OnChainStatus,
    RecoveryAction,
    RecoveryActionType,
    SetupResult,
    TokenBalance,
)
from backend_jarwatch.recovery.planner import RecoveryPlanner

__all__ = [
    "AutoRecoverOptions",
    "AutoRecoverResult",
    "FullAnalysis",
    "JarHealth",
    "OnChainStatus",
    "RecoveryAction",
    "RecoveryActionType",
    "RecoveryPlanner",
    "SetupResult",
    "TokenBalance",
]
