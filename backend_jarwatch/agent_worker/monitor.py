"""
JarMonitor: one object wiring a LedgerClient into the scanner, analysis
engine, recovery planner, transfer store, observers and session manager.
"""

from __future__ import annotations

from backend_jarwatch.agent_worker.hooks import JarObserver, ObserverRegistry
from backend_jarwatch.agent_worker.sessions import (
    MonitoringSession,
    SessionHandle,
    SessionManager,
    SessionOptions,
)
from backend_jarwatch.agent_worker.store import TransferStore
from backend_jarwatch.analysis_engine.analyzer import AnalysisEngine, summarize_transfers
from backend_jarwatch.analysis_engine.models import AnomalyReport, JarAnalysis, Recommendations
from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.ledger.client import LedgerClient
from backend_jarwatch.ledger.models import TransactionReceipt
from backend_jarwatch.recovery.models import (
    AutoRecoverOptions,
    AutoRecoverResult,
    FullAnalysis,
    JarHealth,
    RecoveryAction,
)
from backend_jarwatch.recovery.planner import RecoveryPlanner
from backend_jarwatch.transfer_listener.models import DetectedTransfer
from backend_jarwatch.transfer_listener.scanner import LATEST, LogScanner
from backend_jarwatch.transfer_listener.watcher import RealTimeWatcher

logger = get_logger(__name__)


class JarMonitor:
    def __init__(self, client: LedgerClient) -> None:
        self.client = client
        self.config = client.config
        self.scanner = LogScanner(client.reader, client.jar_address)
        self.engine = AnalysisEngine(self.scanner, client.config)
        self.planner = RecoveryPlanner(client.jar, self.engine, client.reader)
        self.store = TransferStore()
        self.observers = ObserverRegistry()
        self.sessions = SessionManager(
            self.planner,
            self._new_watcher,
            config=client.config,
            store=self.store,
            observers=self.observers,
        )

    @property
    def jar_address(self) -> str:
        return self.client.jar_address

    def _new_watcher(self) -> RealTimeWatcher:
        return RealTimeWatcher(
            LogScanner(self.client.reader, self.client.jar_address),
            self.client.reader,
            subscriber=self.client.subscriber,
            config=self.config,
        )

    def register_observer(self, observer: JarObserver) -> None:
        self.observers.register(observer)

    def unregister_observer(self, observer: JarObserver) -> None:
        self.observers.unregister(observer)

    async def scan_historical(self, from_block: int = 0, to_block: int | str = LATEST) -> list[DetectedTransfer]:
        """Scan a block range and record the results in the store."""
        transfers = await self.scanner.scan_block_range(from_block, to_block)
        added = self.store.extend(transfers)
        logger.info(
            "historical_scan_completed",
            jar_address=self.jar_address,
            from_block=from_block,
            to_block=to_block,
            found=len(transfers),
            new=added,
        )
        return transfers

    async def analyze(self, from_block: int = 0, to_block: int | str = LATEST) -> JarAnalysis:
        transfers = await self.scan_historical(from_block, to_block)
        return summarize_transfers(self.jar_address, transfers)

    def detect_anomalies(self, transfers: list[DetectedTransfer] | None = None) -> AnomalyReport:
        """Anomalies over the given transfers, or over everything stored."""
        return self.engine.detect_anomalies(self.store.all() if transfers is None else transfers)

    def generate_recommendations(self, analysis: JarAnalysis) -> Recommendations:
        return self.engine.generate_recommendations(analysis)

    async def perform_full_analysis(self, from_block: int = 0) -> FullAnalysis:
        full = await self.planner.perform_full_analysis(from_block)
        self.store.extend(full.transfer_analysis.transfers)
        return full

    async def check_health(self, from_block: int = 0) -> JarHealth:
        health = await self.planner.check_jar_health(from_block)
        await self.observers.notify_health(health)
        return health

    async def execute_action(self, action: RecoveryAction) -> TransactionReceipt:
        """Submit one planned action and wait for its receipt."""
        logger.info("action_executing", action_type=action.type.value, action=action.description)
        pending = await action.execute()
        receipt = await pending.wait()
        logger.info(
            "action_executed",
            action_type=action.type.value,
            tx_hash=pending.tx_hash,
            gas_used=receipt.gas_used,
        )
        return receipt

    async def auto_recover(self, options: AutoRecoverOptions | None = None) -> AutoRecoverResult:
        return await self.planner.auto_recover(options)

    async def start_monitoring_session(self, options: SessionOptions | None = None) -> SessionHandle:
        return await self.sessions.start_monitoring_session(options)

    async def stop_monitoring_session(self, handle: SessionHandle) -> MonitoringSession | None:
        return await self.sessions.stop_monitoring_session(handle)

    async def aclose(self) -> None:
        await self.sessions.stop_all()
        await self.client.aclose()
