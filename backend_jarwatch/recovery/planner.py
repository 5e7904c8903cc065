"""
Recovery planner: joins scanned transfer history with the jar's on-chain
bookkeeping to produce health verdicts and executable recovery actions.

Responsibilities:
- Read on-chain status (monitored tokens, unaccounted / pending balances).
- Plan RecoveryActions (configure, scan, emergency, process) with gas estimates.
- Evaluate jar health; never raise from check_jar_health.
- Execute plans (auto_recover, quick_recover, setup_optimal_monitoring) when a
  signer is available.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Iterable, Sequence

from backend_jarwatch.analysis_engine.analyzer import AnalysisEngine
from backend_jarwatch.analysis_engine.models import JarAnalysis
from backend_jarwatch.core.exceptions import (
    ActionExecutionError,
    HealthCheckError,
    NothingToRecoverError,
    SignerRequiredError,
)
from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.ledger import abi
from backend_jarwatch.ledger.signer import PendingTransaction
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
from backend_jarwatch.transfer_listener.scanner import UNKNOWN_SYMBOL

logger = get_logger(__name__)


async def _gather_all(*aws: Any) -> list[Any]:
    """Run concurrently and let every call finish, then raise the first failure."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)

CONFIGURE_GAS = 50_000
SCAN_GAS = 100_000
PROCESS_GAS = 150_000
EMERGENCY_GAS = 200_000

# Stablecoins get auto-processing in setup_optimal_monitoring (USDC, DAI, USDT)
DEFAULT_STABLECOINS: tuple[str, ...] = (
    "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    "0x6B175474E89094C44Da98b954EedeAC495271d0F",
    "0xdAC17F958D2ee523a2206206994597C13D831ec7",
)
AUTO_PROCESSING_MIN_AMOUNT = abi.parse_ether("100")
AUTO_PROCESSING_MAX_SLIPPAGE_BPS = 500


class RecoveryPlanner:
    """
    `jar` is a ledger.contracts.JarContract (or compatible); `reader` needs
    get_gas_price() for the auto-recovery gas gate.
    """

    def __init__(
        self,
        jar: Any,
        engine: AnalysisEngine,
        reader: Any,
        *,
        stablecoins: Iterable[str] = DEFAULT_STABLECOINS,
    ) -> None:
        self._jar = jar
        self._engine = engine
        self._reader = reader
        self._stablecoins = {s.lower() for s in stablecoins}

    @property
    def jar_address(self) -> str:
        return self._jar.address

    @property
    def has_signer(self) -> bool:
        return self._jar.has_signer

    # --- on-chain status ---

    async def get_on_chain_status(self) -> OnChainStatus:
        monitored, total_detected, jar_balance = await _gather_all(
            self._jar.get_monitored_tokens(),
            self._jar.get_total_detected_transfers(),
            self._jar.get_jar_token_balance(),
        )
        unaccounted, pending = await _gather_all(
            self._token_balances(monitored, self._jar.get_unaccounted_balance, "unaccounted"),
            self._token_balances(monitored, self._jar.get_pending_balance, "pending"),
        )
        return OnChainStatus(
            monitored_tokens=list(monitored),
            unaccounted_balances=unaccounted,
            pending_balances=pending,
            total_detected_transfers=int(total_detected),
            jar_token_balance=int(jar_balance),
        )

    async def _token_balances(self, tokens: Sequence[str], read_amount: Any, kind: str) -> list[TokenBalance]:
        async def one(token: str) -> TokenBalance:
            try:
                amount, symbol = await _gather_all(
                    read_amount(token), self._jar.get_token_symbol(token)
                )
                return TokenBalance(token=token, amount=int(amount), symbol=symbol)
            except Exception as e:
                logger.warning("balance_read_failed", token=token, kind=kind, error=str(e))
                return TokenBalance(token=token, amount=0, symbol=UNKNOWN_SYMBOL)

        balances = await asyncio.gather(*(one(t) for t in tokens))
        return [b for b in balances if b.amount > 0]

    # --- planning ---

    async def generate_recovery_actions(
        self, analysis: JarAnalysis, status: OnChainStatus
    ) -> list[RecoveryAction]:
        """
        Plan actions in order: configure (per unmonitored token with direct
        transfers), scan (when direct transfers outnumber on-chain detections),
        emergency (per unaccounted balance), process (per pending balance).
        """
        jar = self._jar
        actions: list[RecoveryAction] = []

        unmonitored: dict[str, str] = {}
        for t in analysis.direct_transfers:
            if not status.is_monitored(t.token) and t.token.lower() not in unmonitored:
                unmonitored[t.token.lower()] = t.token
        for token in unmonitored.values():
            symbol = await self._symbol(token)
            actions.append(
                RecoveryAction(
                    type=RecoveryActionType.CONFIGURE,
                    description=f"Enable monitoring for {symbol}",
                    token=token,
                    estimated_gas=CONFIGURE_GAS,
                    execute=lambda token=token: jar.enable_token_monitoring(token, gas=CONFIGURE_GAS),
                )
            )

        if len(analysis.direct_transfers) > status.total_detected_transfers:
            actions.append(
                RecoveryAction(
                    type=RecoveryActionType.SCAN,
                    description="Scan all monitored tokens for new transfers",
                    estimated_gas=SCAN_GAS,
                    execute=lambda: jar.scan_all_monitored_tokens(gas=SCAN_GAS),
                )
            )

        for balance in status.unaccounted_balances:
            actions.append(
                RecoveryAction(
                    type=RecoveryActionType.EMERGENCY,
                    description=f"Emergency recover {abi.format_ether(balance.amount)} {balance.symbol}",
                    token=balance.token,
                    amount=balance.amount,
                    estimated_gas=EMERGENCY_GAS,
                    execute=lambda token=balance.token: jar.emergency_recover(token, 0, 0, [], gas=EMERGENCY_GAS),
                )
            )

        for balance in status.pending_balances:
            actions.append(
                RecoveryAction(
                    type=RecoveryActionType.PROCESS,
                    description=f"Process {abi.format_ether(balance.amount)} pending {balance.symbol}",
                    token=balance.token,
                    amount=balance.amount,
                    estimated_gas=PROCESS_GAS,
                    execute=lambda token=balance.token: jar.process_all_detected_transfers(
                        token, 0, [], gas=PROCESS_GAS
                    ),
                )
            )
        return actions

    async def _symbol(self, token: str) -> str:
        try:
            return await self._jar.get_token_symbol(token)
        except Exception:
            return UNKNOWN_SYMBOL

    # --- analysis & health ---

    async def perform_full_analysis(self, from_block: int = 0) -> FullAnalysis:
        analysis, status = await _gather_all(
            self._engine.analyze_jar(from_block),
            self.get_on_chain_status(),
        )
        actions = await self.generate_recovery_actions(analysis, status)
        health = self.evaluate_health(analysis, status)
        logger.info(
            "full_analysis_completed",
            jar_address=self.jar_address,
            total_transfers=analysis.total_transfers,
            recovery_actions=len(actions),
            is_healthy=health.is_healthy,
        )
        return FullAnalysis(
            transfer_analysis=analysis,
            on_chain_status=status,
            recovery_actions=actions,
            health_status=health,
        )

    def evaluate_health(self, analysis: JarAnalysis, status: OnChainStatus) -> JarHealth:
        """Health verdict from already-read inputs; one issue and one recommendation per violation."""
        issues: list[str] = []
        recommendations: list[str] = []

        if status.unaccounted_balances:
            issues.append(f"{len(status.unaccounted_balances)} tokens with unaccounted balances")
            recommendations.append("Run emergency recovery for unaccounted tokens")

        if status.pending_balances:
            issues.append(f"{len(status.pending_balances)} tokens with pending balances")
            recommendations.append("Process pending token swaps")

        unmonitored = [t for t in analysis.unique_tokens if not status.is_monitored(t)]
        if unmonitored:
            issues.append(f"{len(unmonitored)} tokens not monitored")
            recommendations.append("Enable monitoring for all tokens that received transfers")

        return JarHealth(
            address=self.jar_address,
            is_healthy=not issues,
            issues=issues,
            recommendations=recommendations,
            last_checked=time.time(),
        )

    async def check_jar_health(self, from_block: int = 0) -> JarHealth:
        """Never raises: read failures produce an unhealthy verdict with one diagnostic issue."""
        try:
            status, analysis = await _gather_all(
                self.get_on_chain_status(),
                self._engine.analyze_jar(from_block),
            )
        except Exception as e:
            error = HealthCheckError(str(e))
            logger.warning("health_check_failed", jar_address=self.jar_address, error=str(error))
            return JarHealth(
                address=self.jar_address,
                is_healthy=False,
                issues=[f"Error checking health: {error}"],
                recommendations=["Check contract connectivity"],
                last_checked=time.time(),
            )
        health = self.evaluate_health(analysis, status)
        logger.info(
            "health_checked",
            jar_address=self.jar_address,
            is_healthy=health.is_healthy,
            issues=len(health.issues),
        )
        return health

    # --- execution ---

    def _wanted(self, action: RecoveryAction, options: AutoRecoverOptions) -> bool:
        if action.type is RecoveryActionType.CONFIGURE:
            return options.enable_monitoring
        if action.type is RecoveryActionType.EMERGENCY:
            return options.process_unaccounted
        if action.type is RecoveryActionType.PROCESS:
            return options.process_pending
        return True

    async def auto_recover(self, options: AutoRecoverOptions | None = None) -> AutoRecoverResult:
        """
        Plan via perform_full_analysis and execute each wanted action in order,
        waiting for confirmation. Failures are recorded in result.errors and the
        remaining actions still run.
        """
        options = options or AutoRecoverOptions()
        result = AutoRecoverResult()

        if not self._jar.has_signer:
            result.errors.append("Auto-recovery failed: Signer required for auto-recovery")
            logger.warning("auto_recover_no_signer", jar_address=self.jar_address)
            return result

        try:
            full = await self.perform_full_analysis(options.from_block)
        except Exception as e:
            result.errors.append(f"Auto-recovery failed: {e}")
            logger.error("auto_recover_planning_failed", jar_address=self.jar_address, error=str(e))
            return result

        actions = [a for a in full.recovery_actions if self._wanted(a, options)]
        result.actions_planned = len(actions)
        logger.info(
            "auto_recover_planned",
            jar_address=self.jar_address,
            actions=len(actions),
            dry_run=options.dry_run,
        )
        if options.dry_run:
            return result

        for action in actions:
            try:
                if options.max_gas_price is not None:
                    gas_price = await self._reader.get_gas_price()
                    if gas_price > options.max_gas_price:
                        result.errors.append(f"Gas price too high: {gas_price}")
                        logger.warning(
                            "auto_recover_gas_price_too_high",
                            action=action.description,
                            gas_price=gas_price,
                            max_gas_price=options.max_gas_price,
                        )
                        continue
                pending = await action.execute()
                receipt = await pending.wait()
            except Exception as e:
                err = ActionExecutionError(f"Failed to execute {action.description}: {e}")
                result.errors.append(str(err))
                logger.error(
                    "auto_recover_action_failed",
                    action_type=action.type.value,
                    action=action.description,
                    error=str(e),
                )
                continue
            result.actions_executed += 1
            result.total_gas_used += receipt.gas_used
            result.transactions.append(pending.tx_hash)
            logger.info(
                "auto_recover_action_completed",
                action_type=action.type.value,
                action=action.description,
                gas_used=receipt.gas_used,
                tx_hash=pending.tx_hash,
            )

        logger.info(
            "auto_recover_completed",
            jar_address=self.jar_address,
            executed=result.actions_executed,
            planned=result.actions_planned,
            errors=len(result.errors),
        )
        return result

    async def quick_recover(self, token: str) -> PendingTransaction:
        """
        Enable monitoring if needed, scan the token, then submit an emergency
        recovery for any unaccounted balance. Returns the recovery transaction.

        Raises SignerRequiredError without a signer, NothingToRecoverError when
        no unaccounted balance remains.
        """
        if not self._jar.has_signer:
            raise SignerRequiredError("Signer required for recovery")
        jar = self._jar

        if not await jar.is_monitored(token):
            logger.info("quick_recover_enabling_monitoring", token=token)
            await (await jar.enable_token_monitoring(token)).wait()

        if await jar.simulate_scan_token(token):
            await (await jar.scan_token(token)).wait()

        unaccounted = await jar.get_unaccounted_balance(token)
        if unaccounted <= 0:
            raise NothingToRecoverError("No tokens to recover")
        logger.info(
            "quick_recover_submitting",
            token=token,
            amount=abi.format_ether(unaccounted),
        )
        return await jar.emergency_recover(token, 0, 0, [])

    def is_stablecoin(self, token: str) -> bool:
        return token.lower() in self._stablecoins

    async def setup_optimal_monitoring(self, common_tokens: Sequence[str]) -> SetupResult:
        """
        Enable monitoring for each unmonitored token, then configure
        auto-processing for the stablecoins among them. Per-token failures are
        collected in the result.
        """
        if not self._jar.has_signer:
            raise SignerRequiredError("Signer required for setup")
        jar = self._jar
        result = SetupResult()

        for token in common_tokens:
            try:
                if not await jar.is_monitored(token):
                    await (await jar.enable_token_monitoring(token)).wait()
                    result.tokens_enabled.append(token)
            except Exception as e:
                result.errors.append(f"Failed to enable monitoring for {token}: {e}")

        for token in (t for t in common_tokens if self.is_stablecoin(t)):
            try:
                await (
                    await jar.configure_auto_processing(
                        token, True, AUTO_PROCESSING_MIN_AMOUNT, AUTO_PROCESSING_MAX_SLIPPAGE_BPS, []
                    )
                ).wait()
                result.auto_processing_configured.append(token)
            except Exception as e:
                result.errors.append(f"Failed to configure auto-processing for {token}: {e}")

        logger.info(
            "monitoring_setup_completed",
            jar_address=self.jar_address,
            tokens_enabled=len(result.tokens_enabled),
            auto_processing_configured=len(result.auto_processing_configured),
            errors=len(result.errors),
        )
        return result
