"""
Environment variable loading for the acquisition tracker.

- SOLANA_RPC_URL: primary RPC endpoint (read from .env)
- SOLANA_RPC_URLS: optional comma-separated endpoint pool (overrides the default fallbacks)
- HELIUS_API_KEY: Helius API key (used for the primary URL when SOLANA_RPC_URL is unset)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is acquisition_tracker/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"

# Public fallbacks tried in order after the primary endpoint
FALLBACK_RPC_URLS = (
    "https://solana-api.projectserum.com",
    "https://rpc.ankr.com/solana",
    "https://mainnet.rpcpool.com",
)


def load_tracker_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    load_dotenv(_ENV_PATH)


def get_solana_rpc_url() -> str:
    """
    Resolve the primary Solana RPC URL from env.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY > public mainnet.
    """
    load_tracker_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key:
        return HELIUS_MAINNET_URL_TEMPLATE.format(key=key)
    return MAINNET_RPC_URL


def get_rpc_endpoints() -> list[str]:
    """
    Endpoint pool for rotation. SOLANA_RPC_URLS (comma list) wins; otherwise
    the primary URL followed by the public fallbacks, without duplicates.
    """
    load_tracker_env()
    raw = (os.getenv("SOLANA_RPC_URLS") or "").strip()
    if raw:
        urls = [u.strip() for u in raw.split(",") if u.strip()]
    else:
        urls = [get_solana_rpc_url(), *FALLBACK_RPC_URLS]
    out: list[str] = []
    for u in urls:
        if u not in out:
            out.append(u)
    return out


def env_float(name: str, default: float) -> float:
    """Read a float env var; blank or malformed values fall back to default."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int | None) -> int | None:
    """Read an int env var; blank or malformed values fall back to default."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def mask_url(url: str) -> str:
    """Hide API keys in URLs before logging them."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    return url
