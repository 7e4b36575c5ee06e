# config/settings.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEXSCREENER_BASE_URL = "https://api.dexscreener.com"

# Soroban RPC endpoints per network; override with STELLAR_RPC_URL.
DEFAULT_RPC_URLS = {
    "testnet": "https://soroban-testnet.stellar.org",
    "futurenet": "https://rpc-futurenet.stellar.org",
    "public": "https://mainnet.sorobanrpc.com",
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Non-positive %s=%r, using default %s", name, raw, default)
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Non-positive %s=%r, using default %s", name, raw, default)
        return default
    return value


def _env_str(name: str) -> Optional[str]:
    raw = (os.getenv(name) or "").strip()
    return raw or None


@dataclass(frozen=True)
class OracleSettings:
    dexscreener_base_url: str = DEXSCREENER_BASE_URL
    update_interval_ms: int = 30_000
    min_request_interval_ms: int = 250
    request_timeout_s: float = 10.0

    stellar_network: str = "testnet"
    stellar_rpc_url: str = DEFAULT_RPC_URLS["testnet"]
    provider_secret: Optional[str] = None
    contract_id: Optional[str] = None
    ledger_timeout_s: float = 30.0

    port: int = 3001
    history_limit: int = 100
    cors_origins: tuple[str, ...] = ("*",)

    @property
    def update_interval_s(self) -> float:
        return self.update_interval_ms / 1000.0

    @property
    def min_request_interval_s(self) -> float:
        return self.min_request_interval_ms / 1000.0

    @staticmethod
    def from_env() -> "OracleSettings":
        network = (os.getenv("STELLAR_NETWORK") or "testnet").strip().lower()
        if network not in DEFAULT_RPC_URLS:
            logger.warning("Unknown STELLAR_NETWORK=%r, using testnet", network)
            network = "testnet"

        origins = tuple(
            o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()
        ) or ("*",)

        return OracleSettings(
            # The market-data source is fixed; the override exists for staging proxies.
            dexscreener_base_url=(_env_str("DEXSCREENER_BASE_URL") or DEXSCREENER_BASE_URL).rstrip("/"),
            update_interval_ms=_env_int("UPDATE_INTERVAL", 30_000),
            min_request_interval_ms=_env_int("MIN_REQUEST_INTERVAL", 250),
            request_timeout_s=_env_float("REQUEST_TIMEOUT_S", 10.0),

            stellar_network=network,
            stellar_rpc_url=_env_str("STELLAR_RPC_URL") or DEFAULT_RPC_URLS[network],
            provider_secret=_env_str("PROVIDER_SECRET"),
            contract_id=_env_str("ORACLE_CONTRACT_ID"),
            ledger_timeout_s=_env_float("LEDGER_TIMEOUT_S", 30.0),

            port=_env_int("API_PORT", _env_int("PORT", 3001)),
            history_limit=_env_int("HISTORY_LIMIT", 100),
            cors_origins=origins,
        )
