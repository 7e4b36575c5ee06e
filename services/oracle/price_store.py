# services/oracle/price_store.py
from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Optional

from schemas.oracle import PriceHistoryEntry, PriceRecord

DEFAULT_HISTORY_LIMIT = 100


class PriceStore:
    """
    Latest PriceRecord per symbol plus a bounded FIFO history.

    Single writer: only UpdateScheduler calls `upsert`. Each upsert swaps the
    current record and appends history with no await in between, so readers
    on the event loop never see a half-applied update.
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if history_limit <= 0:
            raise ValueError("history_limit must be positive")
        self.history_limit = history_limit
        self._latest: Dict[str, PriceRecord] = {}
        self._history: Dict[str, Deque[PriceHistoryEntry]] = {}

    def upsert(self, record: PriceRecord) -> None:
        history = self._history.get(record.symbol)
        if history is None:
            history = deque(maxlen=self.history_limit)
            self._history[record.symbol] = history
        history.append(PriceHistoryEntry.from_record(record))
        self._latest[record.symbol] = record

    def get(self, symbol: str) -> Optional[PriceRecord]:
        return self._latest.get(symbol)

    def get_history(self, symbol: str, limit: Optional[int] = None) -> List[PriceHistoryEntry]:
        """Most recent `limit` entries, oldest first. None means all."""
        entries = list(self._history.get(symbol, ()))
        if limit is None:
            return entries
        if limit <= 0:
            return []
        return entries[-limit:]

    def symbols(self) -> List[str]:
        return list(self._latest.keys())

    def all(self) -> Dict[str, PriceRecord]:
        return dict(self._latest)

    def count(self) -> int:
        return len(self._latest)

    def history_points(self) -> int:
        return sum(len(h) for h in self._history.values())

    def summary(self) -> Dict[str, dict]:
        out: Dict[str, dict] = {}
        for symbol, history in self._history.items():
            out[symbol] = {
                "points": len(history),
                "latest": history[-1].timestamp if history else None,
                "oldest": history[0].timestamp if history else None,
            }
        return out
