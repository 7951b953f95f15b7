"""
Environment variable loading for SolAgg.

- SOLANA_RPC_URL: JSON-RPC HTTP endpoint (default: devnet)
- SOLANA_WS_URL: subscription endpoint (default: derived from SOLANA_RPC_URL)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is solagg/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEVNET_RPC_URL = "https://api.devnet.solana.com"


def load_solagg_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    load_dotenv(_ENV_PATH, override=False)


def http_url_to_ws(http_url: str) -> str:
    """Convert https:// or http:// to wss:// or ws:// for the subscription endpoint."""
    s = http_url.strip()
    if s.startswith("https://"):
        return "wss://" + s[8:]
    if s.startswith("http://"):
        return "ws://" + s[7:]
    return s


def get_solana_rpc_url() -> str:
    """Resolve the JSON-RPC HTTP endpoint. Order: SOLANA_RPC_URL > devnet default."""
    load_solagg_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    return url or DEVNET_RPC_URL


def get_solana_ws_url() -> str:
    """Resolve the subscription endpoint. Order: SOLANA_WS_URL > derived from RPC URL."""
    load_solagg_env()
    url = (os.getenv("SOLANA_WS_URL") or "").strip()
    if url:
        return url
    return http_url_to_ws(get_solana_rpc_url())


def mask_api_key(url: str) -> str:
    """Mask an api-key query parameter so endpoints can be logged."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    return url
