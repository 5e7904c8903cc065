"""
Environment variable loading for JarWatch.

- JARWATCH_NETWORK: mainnet | sepolia | base | ... (default: mainnet)
- JARWATCH_RPC_URL: HTTP JSON-RPC endpoint
- JARWATCH_WS_URL: WebSocket endpoint for push subscriptions (derived from RPC URL when unset)
- JARWATCH_JAR_ADDRESS: jar contract to monitor
- JARWATCH_PRIVATE_KEY: optional hex key enabling recovery transactions
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_jarwatch/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_NETWORK = "mainnet"
PUBLIC_RPC_URLS = {
    "mainnet": "https://ethereum-rpc.publicnode.com",
    "sepolia": "https://ethereum-sepolia-rpc.publicnode.com",
    "base": "https://mainnet.base.org",
    "base-sepolia": "https://sepolia.base.org",
}


def load_jarwatch_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env."""
    load_dotenv(_ENV_PATH, override=False)


def _getenv(name: str) -> str:
    return (os.getenv(name) or "").strip()


def get_network() -> str:
    """Return JARWATCH_NETWORK lowercased; default mainnet."""
    load_jarwatch_env()
    return (_getenv("JARWATCH_NETWORK") or DEFAULT_NETWORK).lower()


def get_rpc_url() -> str:
    """
    Resolve the HTTP JSON-RPC URL.
    Order: JARWATCH_RPC_URL > public endpoint for JARWATCH_NETWORK.
    """
    load_jarwatch_env()
    url = _getenv("JARWATCH_RPC_URL")
    if url:
        return url
    network = get_network()
    if network not in PUBLIC_RPC_URLS:
        raise ValueError(f"No RPC URL configured and no public endpoint for network {network!r}")
    return PUBLIC_RPC_URLS[network]


def http_url_to_ws(http_url: str) -> str:
    """Convert https:// or http:// to wss:// or ws:// for push subscriptions."""
    s = http_url.strip()
    if s.startswith("https://"):
        return "wss://" + s[8:]
    if s.startswith("http://"):
        return "ws://" + s[7:]
    return s


def get_ws_url() -> str | None:
    """JARWATCH_WS_URL, else derived from the RPC URL. Empty string disables push."""
    load_jarwatch_env()
    raw = os.getenv("JARWATCH_WS_URL")
    if raw is not None:
        return raw.strip() or None
    return http_url_to_ws(get_rpc_url())


def get_jar_address() -> str:
    """Return JARWATCH_JAR_ADDRESS; raises ValueError when unset."""
    load_jarwatch_env()
    addr = _getenv("JARWATCH_JAR_ADDRESS")
    if not addr:
        raise ValueError("JARWATCH_JAR_ADDRESS must be set")
    return addr


def get_private_key() -> str | None:
    """Return JARWATCH_PRIVATE_KEY or None (read-only mode)."""
    load_jarwatch_env()
    return _getenv("JARWATCH_PRIVATE_KEY") or None


def mask_url(url: str) -> str:
    """Mask API keys embedded in provider URLs for logging."""
    for marker in ("api-key=", "apikey=", "/v2/", "/v3/"):
        if marker in url:
            return url.split(marker)[0] + marker + "***"
    return url
