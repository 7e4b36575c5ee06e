from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from utils.common_helpers import safe_float

ResolutionMethod = Literal["token_address", "search", "manual_submission"]


def _nested(raw: Dict[str, Any], key: str, inner: str) -> Any:
    block = raw.get(key)
    return block.get(inner) if isinstance(block, dict) else None


class TradingPairCandidate(BaseModel):
    """One DexScreener pair, normalized. Every figure is optional upstream."""

    model_config = ConfigDict(frozen=True)

    price_usd: Optional[float] = None
    change_24h: Optional[float] = None
    volume_24h: Optional[float] = None
    liquidity_usd: Optional[float] = None
    market_cap: Optional[float] = None
    fdv: Optional[float] = None
    dex_id: Optional[str] = None
    chain_id: Optional[str] = None
    pair_address: Optional[str] = None
    base_symbol: Optional[str] = None
    quote_symbol: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_pair(cls, raw: Any) -> Optional["TradingPairCandidate"]:
        if not isinstance(raw, dict):
            return None

        def _str(v: Any) -> Optional[str]:
            return v if isinstance(v, str) and v else None

        return cls(
            price_usd=safe_float(raw.get("priceUsd")),
            change_24h=safe_float(_nested(raw, "priceChange", "h24")),
            volume_24h=safe_float(_nested(raw, "volume", "h24")),
            liquidity_usd=safe_float(_nested(raw, "liquidity", "usd")),
            market_cap=safe_float(raw.get("marketCap")),
            fdv=safe_float(raw.get("fdv")),
            dex_id=_str(raw.get("dexId")),
            chain_id=_str(raw.get("chainId")),
            pair_address=_str(raw.get("pairAddress")),
            base_symbol=_str(_nested(raw, "baseToken", "symbol")),
            quote_symbol=_str(_nested(raw, "quoteToken", "symbol")),
            url=_str(raw.get("url")),
        )


class PriceRecord(BaseModel):
    """Current price for one asset. Serialized with camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str
    price: float
    raw_price: float = Field(alias="rawPrice")
    change_24h: float = Field(default=0.0, alias="change24h")
    volume_24h: float = Field(default=0.0, alias="volume24h")
    liquidity: float = 0.0
    market_cap: float = Field(default=0.0, alias="marketCap")
    fdv: float = 0.0
    timestamp: datetime
    source: str = "dexscreener"
    method: ResolutionMethod
    dex: Optional[str] = None
    chain: Optional[str] = None
    pair_address: Optional[str] = Field(default=None, alias="pairAddress")
    base_token: Optional[str] = Field(default=None, alias="baseToken")
    quote_token: Optional[str] = Field(default=None, alias="quoteToken")
    pair_url: Optional[str] = Field(default=None, alias="pairUrl")
    search_term: Optional[str] = Field(default=None, alias="searchTerm")
    tx_hash: Optional[str] = Field(default=None, alias="txHash")

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class PriceHistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: float
    timestamp: datetime
    source: str

    @classmethod
    def from_record(cls, record: PriceRecord) -> "PriceHistoryEntry":
        return cls(price=record.price, timestamp=record.timestamp, source=record.source)


class ManualSubmission(BaseModel):
    """Body of POST /submit. Values are checked by UpdateScheduler.submit_manual."""

    symbol: Any = None
    price: Any = None
    source: Optional[str] = Field(default="manual")
