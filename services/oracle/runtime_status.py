# services/oracle/runtime_status.py
from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Optional


@dataclass
class OracleRuntimeStatus:
    """In-process counters; mutated only by UpdateScheduler, lost on restart."""

    started_at: float = field(default_factory=time.time)
    update_count: int = 0
    last_update: Optional[datetime] = None
    is_running: bool = False
    provider_configured: bool = False
    contract_configured: bool = False
    network: str = "testnet"
    cycle_durations_ms: Deque[float] = field(default_factory=lambda: deque(maxlen=50))

    @property
    def uptime_s(self) -> int:
        return int(time.time() - self.started_at)

    @property
    def average_update_ms(self) -> Optional[float]:
        if not self.cycle_durations_ms:
            return None
        return round(sum(self.cycle_durations_ms) / len(self.cycle_durations_ms), 1)

    def record_cycle(self, finished_at: datetime, duration_ms: float) -> None:
        self.update_count += 1
        self.last_update = finished_at
        self.cycle_durations_ms.append(duration_ms)
