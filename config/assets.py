# config/assets.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence, Tuple


@dataclass(frozen=True)
class AssetConfig:
    """
    A tracked asset.

    `addresses` maps chain id -> token address and is tried in insertion
    order; `search_terms` are the keyword fallbacks, also in order.
    """

    symbol: str
    name: str
    addresses: Mapping[str, str] = field(default_factory=dict)
    search_terms: Tuple[str, ...] = ()
    min_liquidity: float = 0.0


TRACKED_ASSETS: Tuple[AssetConfig, ...] = (
    AssetConfig(
        symbol="BTC",
        name="Wrapped Bitcoin",
        addresses={
            "solana": "3NZ9JMVBmGAqocybic2c7LQCJScmgsAZ6vQqTDzcqmJh",
            "ethereum": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
        },
        search_terms=("WBTC", "Bitcoin", "BTC"),
        min_liquidity=100_000,
    ),
    AssetConfig(
        symbol="ETH",
        name="Wrapped Ethereum",
        addresses={
            "solana": "7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs",
            "ethereum": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        },
        search_terms=("WETH", "Ethereum", "ETH"),
        min_liquidity=100_000,
    ),
    AssetConfig(
        symbol="SOL",
        name="Wrapped Solana",
        addresses={
            "solana": "So11111111111111111111111111111111111111112",
            "ethereum": "0xD31a59c85aE9D8edEFeC411D448f90841571b89c",
        },
        search_terms=("SOL", "Solana", "WSOL"),
        min_liquidity=50_000,
    ),
    AssetConfig(
        symbol="XLM",
        name="Stellar Lumens",
        addresses={
            "ethereum": "0x0C10bF8FcB7Bf5412187A595ab97a3609160b5c6",
        },
        search_terms=("XLM", "Stellar", "Stellar Lumens"),
        min_liquidity=25_000,
    ),
)


def tracked_symbols(assets: Sequence[AssetConfig] = TRACKED_ASSETS) -> list[str]:
    return [a.symbol for a in assets]
