"""
Application settings and ingestion limits.

AggregatorConfig carries the process-wide constants (rate ceiling, bootstrap
window, retry policy) and is passed explicitly to the fetch client and the
historical loader. Settings adds endpoints and the API bind address and is
built from the environment by get_settings().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from solagg.config.env import get_solana_rpc_url, get_solana_ws_url, load_solagg_env

DEFAULT_RPS_LIMIT = 25
DEFAULT_BOOTSTRAP_LEN = 25
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_BACKOFF_SEC = 0.05
DEFAULT_PACE_INTERVAL_SEC = 1.0
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
DEFAULT_BLOCK_ENCODING = "binary"
DEFAULT_COMMITMENT = "finalized"
DEFAULT_TABLE_NAME = "transactions"
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 3666


@dataclass(frozen=True)
class AggregatorConfig:
    """Limits shared by the fetch client and the historical loader."""

    rps_limit: int = DEFAULT_RPS_LIMIT
    bootstrap_len: int = DEFAULT_BOOTSTRAP_LEN
    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff_sec: float = DEFAULT_INITIAL_BACKOFF_SEC
    pace_interval_sec: float = DEFAULT_PACE_INTERVAL_SEC
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    block_encoding: str = DEFAULT_BLOCK_ENCODING
    commitment: str = DEFAULT_COMMITMENT

    def __post_init__(self) -> None:
        if self.rps_limit <= 0:
            raise ValueError("rps_limit must be positive")
        if self.bootstrap_len < 0:
            raise ValueError("bootstrap_len must be non-negative")
        if self.max_retries <= 0:
            raise ValueError("max_retries must be positive")
        if self.initial_backoff_sec < 0 or self.pace_interval_sec < 0:
            raise ValueError("backoff and pace intervals must be non-negative")


@dataclass(frozen=True)
class Settings:
    """Process settings: endpoints, API bind address, store mode."""

    rpc_url: str
    ws_url: str
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    mocked: bool = True
    table_name: str = DEFAULT_TABLE_NAME
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    """
    Return the current application settings from env (.env loaded first).

    Raises:
        ValueError: if a numeric variable is malformed or a limit is out of range.
    """
    load_solagg_env()
    aggregator = AggregatorConfig(
        rps_limit=_env_int("SOLAGG_RPS_LIMIT", DEFAULT_RPS_LIMIT),
        bootstrap_len=_env_int("SOLAGG_BOOTSTRAP_LEN", DEFAULT_BOOTSTRAP_LEN),
        max_retries=_env_int("SOLAGG_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        initial_backoff_sec=_env_int(
            "SOLAGG_INITIAL_BACKOFF_MS", int(DEFAULT_INITIAL_BACKOFF_SEC * 1000)
        )
        / 1000.0,
    )
    return Settings(
        rpc_url=get_solana_rpc_url(),
        ws_url=get_solana_ws_url(),
        api_host=(os.getenv("API_HOST") or DEFAULT_API_HOST).strip(),
        api_port=_env_int("API_PORT", DEFAULT_API_PORT),
        mocked=_env_bool("SOLAGG_MOCKED", True),
        aggregator=aggregator,
    )
