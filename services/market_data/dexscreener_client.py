# services/market_data/dexscreener_client.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from schemas.oracle import TradingPairCandidate
from services.market_data.rate_limiter import RateLimiter
from services.oracle.errors import TransientFetchError
from utils.common_helpers import safe_json

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "StellarOracle/1.0",
}


def _parse_pairs(payload: Any) -> List[TradingPairCandidate]:
    if not isinstance(payload, list):
        return []
    out: List[TradingPairCandidate] = []
    for raw in payload:
        cand = TradingPairCandidate.from_pair(raw)
        if cand is not None:
            out.append(cand)
    return out


class DexScreenerClient:
    """
    Thin async client for the two DexScreener endpoints the oracle uses.

    `fetch_by_address` / `fetch_by_search` never raise: any transport or shape
    problem is logged and returns []. `_get` raises TransientFetchError for
    callers that need to tell "no pairs" from "request failed".
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        *,
        base_url: str = "https://api.dexscreener.com",
        timeout_s: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            headers=DEFAULT_HEADERS,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        await self.rate_limiter.acquire()
        url = f"{self.base_url}{path}"
        try:
            r = await self._client.get(url, params=params)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise TransientFetchError(f"GET {path} failed: {e}") from e

        data = safe_json(r)
        if data is None:
            raise TransientFetchError(f"GET {path} returned non-JSON body")
        return data

    async def fetch_by_address(self, chain: str, token_address: str) -> List[TradingPairCandidate]:
        try:
            data = await self._get(f"/tokens/v1/{chain}/{token_address}")
        except TransientFetchError as e:
            logger.warning("Token lookup failed chain=%s address=%s: %s", chain, token_address, e)
            return []
        return _parse_pairs(data)

    async def fetch_by_search(self, term: str) -> List[TradingPairCandidate]:
        try:
            data = await self._get("/latest/dex/search", params={"q": term})
        except TransientFetchError as e:
            logger.warning("Search failed term=%r: %s", term, e)
            return []
        pairs = data.get("pairs") if isinstance(data, dict) else None
        return _parse_pairs(pairs)

    async def get_market_status(self) -> Dict[str, Any]:
        """Liveness probe used by /health (one search for USDC)."""
        try:
            data = await self._get("/latest/dex/search", params={"q": "USDC"})
        except TransientFetchError as e:
            return {"status": "offline", "error": str(e), "api": "dexscreener"}

        pairs = data.get("pairs") if isinstance(data, dict) else None
        return {
            "status": "online",
            "timestamp": int(time.time() * 1000),
            "pairs": len(pairs) if isinstance(pairs, list) else 0,
            "api": "dexscreener",
            "rateLimit": "300 req/min",
            "schemaVersion": data.get("schemaVersion") if isinstance(data, dict) else None,
        }
