"""
Data models for recovery planning and health reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from backend_jarwatch.analysis_engine.models import JarAnalysis
from backend_jarwatch.ledger.signer import PendingTransaction


class RecoveryActionType(str, Enum):
    SCAN = "scan"
    PROCESS = "process"
    EMERGENCY = "emergency"
    CONFIGURE = "configure"


@dataclass
class RecoveryAction:
    """
    A planned on-chain step. execute() submits it and returns the pending
    transaction; nothing is sent until it is called.
    """

    type: RecoveryActionType
    description: str
    estimated_gas: int
    execute: Callable[[], Awaitable[PendingTransaction]] = field(repr=False, compare=False)
    token: str | None = None
    amount: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "token": self.token,
            "amount": str(self.amount) if self.amount is not None else None,
            "estimated_gas": self.estimated_gas,
        }


@dataclass(frozen=True)
class TokenBalance:
    token: str
    amount: int
    symbol: str


@dataclass
class OnChainStatus:
    """Snapshot of the jar's detection bookkeeping. Balance lists hold nonzero entries only."""

    monitored_tokens: list[str]
    unaccounted_balances: list[TokenBalance]
    pending_balances: list[TokenBalance]
    total_detected_transfers: int
    jar_token_balance: int

    def is_monitored(self, token: str) -> bool:
        return token.lower() in {t.lower() for t in self.monitored_tokens}

    def to_dict(self) -> dict[str, Any]:
        def _balances(items: list[TokenBalance]) -> list[dict[str, str]]:
            return [{"token": b.token, "amount": str(b.amount), "symbol": b.symbol} for b in items]

        return {
            "monitored_tokens": list(self.monitored_tokens),
            "unaccounted_balances": _balances(self.unaccounted_balances),
            "pending_balances": _balances(self.pending_balances),
            "total_detected_transfers": self.total_detected_transfers,
            "jar_token_balance": str(self.jar_token_balance),
        }


@dataclass
class JarHealth:
    """Health verdict; is_healthy is True iff issues is empty."""

    address: str
    is_healthy: bool
    issues: list[str]
    recommendations: list[str]
    last_checked: float
    """Unix seconds."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "is_healthy": self.is_healthy,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
            "last_checked": self.last_checked,
        }


@dataclass
class FullAnalysis:
    transfer_analysis: JarAnalysis
    on_chain_status: OnChainStatus
    recovery_actions: list[RecoveryAction]
    health_status: JarHealth

    def to_dict(self) -> dict[str, Any]:
        return {
            "transfer_analysis": self.transfer_analysis.to_dict(),
            "on_chain_status": self.on_chain_status.to_dict(),
            "recovery_actions": [a.to_dict() for a in self.recovery_actions],
            "health_status": self.health_status.to_dict(),
        }


@dataclass
class AutoRecoverOptions:
    """
    enable_monitoring / process_unaccounted / process_pending toggle the
    configure / emergency / process actions respectively; scans always run.
    max_gas_price: skip an action when the network gas price is above it (wei).
    dry_run: plan only.
    """

    enable_monitoring: bool = True
    process_unaccounted: bool = True
    process_pending: bool = True
    max_gas_price: int | None = None
    dry_run: bool = False
    from_block: int = 0


@dataclass
class AutoRecoverResult:
    actions_planned: int = 0
    actions_executed: int = 0
    total_gas_used: int = 0
    errors: list[str] = field(default_factory=list)
    transactions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "actions_planned": self.actions_planned,
            "actions_executed": self.actions_executed,
            "total_gas_used": self.total_gas_used,
            "errors": list(self.errors),
            "transactions": list(self.transactions),
        }


@dataclass
class SetupResult:
    tokens_enabled: list[str] = field(default_factory=list)
    auto_processing_configured: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "tokens_enabled": list(self.tokens_enabled),
            "auto_processing_configured": list(self.auto_processing_configured),
            "errors": list(self.errors),
        }
