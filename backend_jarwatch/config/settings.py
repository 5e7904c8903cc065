"""
Application settings and monitoring configuration.

MonitoringConfig enumerates every tunable of the monitor (scan cadence, batch
size, retry policy, real-time flag, token allow-list, amount threshold).
Settings adds connection details resolved from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from backend_jarwatch.config.env import (
    get_jar_address,
    get_network,
    get_private_key,
    get_rpc_url,
    get_ws_url,
    load_jarwatch_env,
)

DEFAULT_SCAN_INTERVAL_SEC = 30.0
DEFAULT_BLOCKS_PER_BATCH = 1000
DEFAULT_MAX_RETRIES = 3
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
DEFAULT_MIN_RETRY_DELAY_SEC = 1.0
DEFAULT_MAX_RETRY_DELAY_SEC = 30.0
DEFAULT_HEALTH_CHECK_INTERVAL_SEC = 60.0
DEFAULT_CONFIRMATION_TIMEOUT_SEC = 300.0
DEFAULT_CONFIRMATION_POLL_SEC = 2.0
DEFAULT_MAX_SEEN_TRANSFERS = 10_000
MIN_SCAN_INTERVAL_SEC = 0.1

# Well-known mainnet tokens (USDC, DAI, USDT, WETH); anything else is "unusual"
DEFAULT_TOKEN_ALLOW_LIST: tuple[str, ...] = (
    "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    "0x6B175474E89094C44Da98b954EedeAC495271d0F",
    "0xdAC17F958D2ee523a2206206994597C13D831ec7",
    "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
)


@dataclass
class MonitoringConfig:
    """
    Config for scanning, real-time watching, and ledger access.

    scan_interval_sec: Seconds between catch-up scans while watching.
    blocks_per_batch: Max blocks covered by one catch-up scan.
    max_retries: Attempts per ledger call on transport failure.
    enable_real_time: Open a push subscription alongside the catch-up timer.
    token_allow_list: Tokens not reported as unusual by anomaly detection.
    min_amount_threshold: Smallest transfer amount (base units) eligible for auto-recovery.
    """

    scan_interval_sec: float = DEFAULT_SCAN_INTERVAL_SEC
    blocks_per_batch: int = DEFAULT_BLOCKS_PER_BATCH
    max_retries: int = DEFAULT_MAX_RETRIES
    enable_real_time: bool = True
    token_allow_list: tuple[str, ...] = field(default_factory=lambda: DEFAULT_TOKEN_ALLOW_LIST)
    min_amount_threshold: int = 0
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    min_retry_delay_sec: float = DEFAULT_MIN_RETRY_DELAY_SEC
    max_retry_delay_sec: float = DEFAULT_MAX_RETRY_DELAY_SEC
    health_check_interval_sec: float | None = DEFAULT_HEALTH_CHECK_INTERVAL_SEC
    confirmation_timeout_sec: float = DEFAULT_CONFIRMATION_TIMEOUT_SEC
    confirmation_poll_sec: float = DEFAULT_CONFIRMATION_POLL_SEC
    max_seen_transfers: int = DEFAULT_MAX_SEEN_TRANSFERS

    def __post_init__(self) -> None:
        self.scan_interval_sec = max(MIN_SCAN_INTERVAL_SEC, float(self.scan_interval_sec))
        self.blocks_per_batch = max(1, int(self.blocks_per_batch))
        self.max_retries = max(1, int(self.max_retries))
        self.token_allow_list = tuple(self.token_allow_list)
        if self.min_amount_threshold < 0:
            raise ValueError("min_amount_threshold must be non-negative")
        if self.request_timeout_sec <= 0:
            raise ValueError("request_timeout_sec must be positive")
        self.max_retry_delay_sec = max(self.min_retry_delay_sec, self.max_retry_delay_sec)
        if self.health_check_interval_sec is not None and self.health_check_interval_sec <= 0:
            self.health_check_interval_sec = None
        self.max_seen_transfers = max(1, int(self.max_seen_transfers))


@dataclass
class Settings:
    """Connection details plus monitoring config for one jar."""

    rpc_url: str
    jar_address: str
    ws_url: str | None = None
    private_key: str | None = None
    network: str = "mainnet"
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_monitoring_config_from_env() -> MonitoringConfig:
    """Build MonitoringConfig from JARWATCH_* environment variables with defaults."""
    load_jarwatch_env()
    allow_raw = (os.getenv("JARWATCH_TOKEN_ALLOW_LIST") or "").strip()
    allow_list = (
        tuple(t.strip() for t in allow_raw.split(",") if t.strip())
        if allow_raw
        else DEFAULT_TOKEN_ALLOW_LIST
    )
    health_interval = _env_float("JARWATCH_HEALTH_CHECK_INTERVAL_SEC", DEFAULT_HEALTH_CHECK_INTERVAL_SEC)
    return MonitoringConfig(
        scan_interval_sec=_env_float("JARWATCH_SCAN_INTERVAL_SEC", DEFAULT_SCAN_INTERVAL_SEC),
        blocks_per_batch=_env_int("JARWATCH_BLOCKS_PER_BATCH", DEFAULT_BLOCKS_PER_BATCH),
        max_retries=_env_int("JARWATCH_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        enable_real_time=_env_bool("JARWATCH_ENABLE_REAL_TIME", True),
        token_allow_list=allow_list,
        min_amount_threshold=_env_int("JARWATCH_MIN_AMOUNT_THRESHOLD", 0),
        request_timeout_sec=_env_float("JARWATCH_REQUEST_TIMEOUT_SEC", DEFAULT_REQUEST_TIMEOUT_SEC),
        health_check_interval_sec=health_interval if health_interval > 0 else None,
        confirmation_timeout_sec=_env_float(
            "JARWATCH_CONFIRMATION_TIMEOUT_SEC", DEFAULT_CONFIRMATION_TIMEOUT_SEC
        ),
    )


def get_settings(jar_address: str | None = None) -> Settings:
    """
    Return the current application settings from environment (and .env).

    jar_address overrides JARWATCH_JAR_ADDRESS. Raises ValueError when neither
    is set.
    """
    return Settings(
        rpc_url=get_rpc_url(),
        jar_address=jar_address or get_jar_address(),
        ws_url=get_ws_url(),
        private_key=get_private_key(),
        network=get_network(),
        monitoring=load_monitoring_config_from_env(),
    )
