# services/market_data/rate_limiter.py
from __future__ import annotations

import asyncio
import time
from typing import Callable, Awaitable


class RateLimiter:
    """
    Minimum spacing between outbound calls.

    One instance is shared by every MarketDataClient call so the DexScreener
    budget (300 req/min) holds process-wide. Waiters are granted in the order
    they reach the lock.
    """

    def __init__(
        self,
        min_interval_s: float = 0.25,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval_s = max(0.0, float(min_interval_s))
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_granted: float | None = None

    async def acquire(self) -> None:
        async with self._lock:
            if self._last_granted is not None:
                wait = self.min_interval_s - (self._clock() - self._last_granted)
                if wait > 0:
                    await self._sleep(wait)
            self._last_granted = self._clock()
