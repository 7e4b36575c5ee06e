# services/oracle/update_scheduler.py
from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Literal, Optional, Sequence

from config.assets import TRACKED_ASSETS, AssetConfig
from schemas.oracle import PriceRecord
from services.ledger.stellar_submitter import LedgerSubmitter
from services.oracle.errors import (
    LedgerNotConfiguredError,
    PriceValidationError,
    SubmissionError,
)
from services.oracle.price_resolver import PriceResolver
from services.oracle.price_store import PriceStore
from services.oracle.runtime_status import OracleRuntimeStatus
from utils.common_helpers import to_minor_units

logger = logging.getLogger(__name__)

I64_MAX = 2**63 - 1

SchedulerState = Literal["idle", "resolving", "submitting"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_symbol(symbol: Any) -> str:
    if not isinstance(symbol, str) or not symbol.strip():
        raise PriceValidationError("Valid symbol and price required")
    return symbol.strip().upper()


def ledger_minor_units(price: float) -> int:
    """Minor units the contract stores (i64). Raises PriceValidationError if unrepresentable."""
    try:
        minor = to_minor_units(price)
    except (OverflowError, ValueError):
        raise PriceValidationError("Price is out of range")
    if minor < 1:
        raise PriceValidationError("Price is below the smallest publishable unit (0.01)")
    if minor > I64_MAX:
        raise PriceValidationError("Price is out of range")
    return minor


def validate_price(price: Any) -> float:
    if isinstance(price, bool) or not isinstance(price, (int, float, str)):
        raise PriceValidationError("Valid symbol and price required")
    try:
        value = float(price)
    except (ValueError, OverflowError):
        raise PriceValidationError("Valid symbol and price required")
    if not math.isfinite(value) or value <= 0:
        raise PriceValidationError("Price must be a positive number")
    ledger_minor_units(value)
    return value


@dataclass
class CycleResult:
    resolved: Dict[str, PriceRecord] = field(default_factory=dict)
    submitted: Dict[str, str] = field(default_factory=dict)
    duration_ms: float = 0.0

    @property
    def failed_submissions(self) -> list[str]:
        return [s for s in self.resolved if s not in self.submitted]


class UpdateScheduler:
    """
    Drives the resolve -> submit -> store cycle on a fixed timer.

    Only one cycle runs at a time; a tick that lands while a cycle is in
    flight is dropped. PriceStore writes from the cycle and from manual
    submissions both go through `_commit`.
    """

    def __init__(
        self,
        resolver: PriceResolver,
        store: PriceStore,
        submitter: LedgerSubmitter,
        assets: Sequence[AssetConfig] = TRACKED_ASSETS,
        *,
        interval_s: float = 30.0,
        shutdown_grace_s: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.resolver = resolver
        self.store = store
        self.submitter = submitter
        self.assets = tuple(assets)
        self.interval_s = interval_s
        self.shutdown_grace_s = shutdown_grace_s
        self._clock = clock

        self.state: SchedulerState = "idle"
        self.status = OracleRuntimeStatus(
            provider_configured=submitter.provider_configured,
            contract_configured=submitter.contract_configured,
            network=submitter.network,
        )

        self._cycle_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._loop_task is not None and not self._loop_task.done():
            return
        self.status.is_running = True
        self._loop_task = asyncio.create_task(self._run_forever(), name="oracle-update-loop")
        logger.info("Price update service started (%.0fs interval)", self.interval_s)

    async def stop(self) -> None:
        self.status.is_running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None

        cycle = self._cycle_task
        if cycle is not None and not cycle.done():
            try:
                await asyncio.wait_for(asyncio.shield(cycle), timeout=self.shutdown_grace_s)
            except asyncio.TimeoutError:
                logger.warning("Abandoning in-flight cycle after %.0fs", self.shutdown_grace_s)
                cycle.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await cycle
        logger.info("Price update service stopped")

    async def _run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self.tick()

    def tick(self) -> bool:
        """Start a cycle unless one is already running."""
        if self.is_cycle_running:
            logger.warning("Previous cycle still running, skipping tick")
            return False
        self._cycle_task = asyncio.create_task(self.run_cycle(), name="oracle-update-cycle")
        return True

    @property
    def is_cycle_running(self) -> bool:
        return self._cycle_lock.locked() or (
            self._cycle_task is not None and not self._cycle_task.done()
        )

    # ------------------------------------------------------------------
    # cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> Optional[CycleResult]:
        """Run one cycle. Returns None if skipped (cycle in flight) or if it raised."""
        if self._cycle_lock.locked():
            logger.warning("Cycle already in flight, ignoring request")
            return None

        async with self._cycle_lock:
            try:
                return await self._run_cycle_locked()
            except Exception:
                # errors stop here; the timer keeps ticking
                logger.exception("Price update cycle failed")
                return None
            finally:
                self.state = "idle"

    async def _run_cycle_locked(self) -> CycleResult:
        started = time.perf_counter()
        logger.info("Starting price update cycle #%d", self.status.update_count + 1)

        self.state = "resolving"
        prices = await self.resolver.resolve_all(self.assets)
        result = CycleResult(resolved=prices)
        if not prices:
            logger.warning("No prices fetched from DexScreener")
            return result

        self.state = "submitting"
        if self.submitter.configured:
            result.submitted = await self._submit_all(prices)
        else:
            logger.info("Ledger not configured, skipping submission for %d price(s)", len(prices))

        records = []
        for symbol, record in prices.items():
            tx_hash = result.submitted.get(symbol)
            if tx_hash:
                record = record.model_copy(update={"tx_hash": tx_hash})
            records.append(record)
        await self._commit(records)

        result.duration_ms = (time.perf_counter() - started) * 1000
        self.status.record_cycle(self._clock(), result.duration_ms)
        logger.info(
            "Update #%d complete in %.0fms: fetched %d price(s), submitted %d",
            self.status.update_count, result.duration_ms, len(prices), len(result.submitted),
        )
        return result

    async def _submit_one(self, record: PriceRecord) -> Optional[str]:
        try:
            minor = ledger_minor_units(record.price)
        except PriceValidationError as e:
            logger.warning("Not submitting %s: %s", record.symbol, e, extra={"symbol": record.symbol})
            return None
        try:
            return await self.submitter.submit_price(record.symbol, minor)
        except SubmissionError as e:
            logger.warning("Submission failed for %s: %s", record.symbol, e, extra={"symbol": record.symbol})
        except Exception:
            logger.exception("Submission raised for %s", record.symbol, extra={"symbol": record.symbol})
        return None

    async def _submit_all(self, prices: Dict[str, PriceRecord]) -> Dict[str, str]:
        symbols = list(prices)
        tx_hashes = await asyncio.gather(*(self._submit_one(prices[s]) for s in symbols))
        return {s: tx for s, tx in zip(symbols, tx_hashes) if tx}

    async def _commit(self, records: Sequence[PriceRecord]) -> None:
        async with self._write_lock:
            for record in records:
                self.store.upsert(record)

    # ------------------------------------------------------------------
    # manual submission
    # ------------------------------------------------------------------

    async def submit_manual(self, symbol: Any, price: Any, source: Optional[str] = None) -> PriceRecord:
        """
        Publish an operator-supplied price.

        Raises PriceValidationError, LedgerNotConfiguredError or
        SubmissionError; the store is only touched after the ledger accepts.
        """
        sym = validate_symbol(symbol)
        value = validate_price(price)

        if not self.submitter.configured:
            raise LedgerNotConfiguredError(
                provider=self.submitter.provider_configured,
                contract=self.submitter.contract_configured,
            )

        tx_hash = await self.submitter.submit_price(sym, ledger_minor_units(value))
        if not tx_hash:
            raise SubmissionError("Failed to submit to Stellar blockchain")

        record = PriceRecord(
            symbol=sym,
            price=value,
            raw_price=value,
            timestamp=self._clock(),
            source=source or "manual",
            method="manual_submission",
            tx_hash=tx_hash,
        )
        await self._commit([record])
        logger.info("Manual submission %s=%.6f tx=%s", sym, value, tx_hash)
        return record
