# services/oracle/price_resolver.py
from __future__ import annotations

import functools
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Protocol

from config.assets import AssetConfig
from schemas.oracle import PriceRecord, ResolutionMethod, TradingPairCandidate

logger = logging.getLogger(__name__)

# Pairs whose liquidity differs by no more than this are ranked by volume.
LIQUIDITY_TIE_BAND_USD = 10_000.0

# Wrapped tickers accepted for an expected symbol on search results.
WRAPPED_ALIASES = {
    "BTC": ("WBTC",),
    "ETH": ("WETH",),
    "SOL": ("WSOL",),
}


class MarketDataClient(Protocol):
    async def fetch_by_address(self, chain: str, token_address: str) -> List[TradingPairCandidate]:
        ...

    async def fetch_by_search(self, term: str) -> List[TradingPairCandidate]:
        ...


def symbol_matches(base_symbol: Optional[str], expected: str) -> bool:
    """Case-insensitive substring match either way, plus wrapped aliases."""
    if not base_symbol:
        # Upstream omitted the base token; nothing to contradict the query.
        return True
    base = base_symbol.upper()
    want = expected.upper()
    if want in base or base in want:
        return True
    return any(alias in base for alias in WRAPPED_ALIASES.get(want, ()))


def filter_candidates(
    candidates: Iterable[TradingPairCandidate],
    min_liquidity: float,
    expected_symbol: Optional[str] = None,
) -> List[TradingPairCandidate]:
    out: List[TradingPairCandidate] = []
    for c in candidates:
        if not c.price_usd or not c.liquidity_usd:
            continue
        if c.liquidity_usd < min_liquidity:
            continue
        if expected_symbol and not symbol_matches(c.base_symbol, expected_symbol):
            continue
        out.append(c)
    return out


def _compare(a: TradingPairCandidate, b: TradingPairCandidate) -> int:
    liq_diff = (b.liquidity_usd or 0.0) - (a.liquidity_usd or 0.0)
    if abs(liq_diff) > LIQUIDITY_TIE_BAND_USD:
        return 1 if liq_diff > 0 else -1
    vol_diff = (b.volume_24h or 0.0) - (a.volume_24h or 0.0)
    if vol_diff > 0:
        return 1
    if vol_diff < 0:
        return -1
    return 0


def rank_candidates(candidates: Iterable[TradingPairCandidate]) -> List[TradingPairCandidate]:
    """Liquidity desc; within the tie band, 24h volume desc. Stable."""
    return sorted(candidates, key=functools.cmp_to_key(_compare))


def select_best(
    candidates: Iterable[TradingPairCandidate],
    min_liquidity: float,
    expected_symbol: Optional[str] = None,
) -> Optional[TradingPairCandidate]:
    ranked = rank_candidates(filter_candidates(candidates, min_liquidity, expected_symbol))
    return ranked[0] if ranked else None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_price_record(
    symbol: str,
    pair: TradingPairCandidate,
    method: ResolutionMethod,
    search_term: str,
    timestamp: datetime,
) -> PriceRecord:
    price = float(pair.price_usd or 0.0)
    return PriceRecord(
        symbol=symbol,
        price=price,
        raw_price=price,
        change_24h=pair.change_24h or 0.0,
        volume_24h=pair.volume_24h or 0.0,
        liquidity=pair.liquidity_usd or 0.0,
        market_cap=pair.market_cap or 0.0,
        fdv=pair.fdv or 0.0,
        timestamp=timestamp,
        source="dexscreener",
        method=method,
        dex=pair.dex_id,
        chain=pair.chain_id,
        pair_address=pair.pair_address,
        base_token=pair.base_symbol,
        quote_token=pair.quote_symbol,
        pair_url=pair.url,
        search_term=search_term,
    )


class PriceResolver:
    """
    Resolves one PriceRecord per asset: token-address lookups across the
    configured chains first, keyword search second. Returns None when
    neither path yields a pair that survives filtering.
    """

    def __init__(self, client: MarketDataClient, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.client = client
        self._clock = clock

    async def resolve_by_address(self, asset: AssetConfig) -> Optional[PriceRecord]:
        for chain, address in asset.addresses.items():
            try:
                pairs = await self.client.fetch_by_address(chain, address)
            except Exception as e:
                logger.warning("Token address lookup raised for %s on %s: %s", asset.symbol, chain, e)
                continue
            best = select_best(pairs, asset.min_liquidity)
            if best is not None:
                return to_price_record(asset.symbol, best, "token_address", chain, self._clock())
            logger.debug("No usable pair for %s on %s (%d returned)", asset.symbol, chain, len(pairs))
        return None

    async def resolve_by_search(self, asset: AssetConfig) -> Optional[PriceRecord]:
        for term in asset.search_terms:
            try:
                pairs = await self.client.fetch_by_search(term)
            except Exception as e:
                logger.warning("Search raised for %s term=%r: %s", asset.symbol, term, e)
                continue
            best = select_best(pairs, asset.min_liquidity, expected_symbol=asset.symbol)
            if best is not None:
                return to_price_record(asset.symbol, best, "search", term, self._clock())
        return None

    async def resolve(self, asset: AssetConfig) -> Optional[PriceRecord]:
        record = await self.resolve_by_address(asset)
        if record is None:
            record = await self.resolve_by_search(asset)

        if record is None:
            logger.warning("No price found for %s", asset.symbol)
        else:
            logger.info(
                "%s: $%.6f via %s (%s)", asset.symbol, record.price, record.method, record.dex,
            )
        return record

    async def resolve_all(self, assets: Iterable[AssetConfig]) -> dict[str, PriceRecord]:
        """Resolve assets in order; one asset's failure never affects another."""
        prices: dict[str, PriceRecord] = {}
        for asset in assets:
            try:
                record = await self.resolve(asset)
            except Exception:
                logger.exception("Price resolution failed for %s", asset.symbol)
                continue
            if record is not None:
                prices[asset.symbol] = record
        return prices
