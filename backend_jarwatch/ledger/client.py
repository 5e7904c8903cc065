"""
LedgerClient: the explicit bundle of ledger interfaces handed to every component.

Holds the read interface, the optional write interface (None = read-only),
the optional push subscriber, the jar binding, and the monitoring config.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from backend_jarwatch.config.settings import MonitoringConfig, Settings
from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.ledger.contracts import JarContract
from backend_jarwatch.ledger.rpc import JsonRpcClient, LedgerReader
from backend_jarwatch.ledger.signer import LedgerWriter
from backend_jarwatch.ledger.subscription import LogSubscriber

logger = get_logger(__name__)


@dataclass
class LedgerClient:
    reader: LedgerReader
    jar: JarContract
    config: MonitoringConfig = field(default_factory=MonitoringConfig)
    writer: LedgerWriter | None = None
    subscriber: LogSubscriber | None = None

    @property
    def jar_address(self) -> str:
        return self.jar.address

    @property
    def can_write(self) -> bool:
        return self.writer is not None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "LedgerClient":
        config = settings.monitoring
        rpc = JsonRpcClient(settings.rpc_url, config=config, http_client=http_client)
        reader = LedgerReader(rpc)
        writer = (
            LedgerWriter(reader, settings.private_key, config=config)
            if settings.private_key
            else None
        )
        subscriber = (
            LogSubscriber(settings.ws_url)
            if settings.ws_url and config.enable_real_time
            else None
        )
        logger.info(
            "ledger_client_created",
            jar_address=settings.jar_address,
            network=settings.network,
            read_only=writer is None,
            real_time=subscriber is not None,
        )
        return cls(
            reader=reader,
            jar=JarContract(settings.jar_address, reader, writer),
            config=config,
            writer=writer,
            subscriber=subscriber,
        )

    async def aclose(self) -> None:
        await self.reader.rpc.aclose()
