# routers/oracle_routes.py
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from config.assets import tracked_symbols
from middleware.rate_limit import SUBMIT_RATE_LIMIT, limiter
from schemas.oracle import ManualSubmission
from services.market_data.dexscreener_client import DexScreenerClient
from services.oracle.errors import (
    LedgerNotConfiguredError,
    PriceValidationError,
    SubmissionError,
)
from services.oracle.update_scheduler import UpdateScheduler
from utils.common_helpers import safe_int

logger = logging.getLogger(__name__)

router = APIRouter()

SUBMIT_EXAMPLE = {"symbol": "BTC", "price": 67000.50}
DEFAULT_HISTORY_LIMIT = 50
SYMBOL_HISTORY_POINTS = 10


def get_scheduler(request: Request) -> UpdateScheduler:
    return request.app.state.scheduler


def get_market_client(request: Request) -> Optional[DexScreenerClient]:
    return getattr(request.app.state, "market_client", None)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat().replace("+00:00", "Z") if ts else None


def _now_iso() -> str:
    return _iso(datetime.now(timezone.utc))


@router.get("/health")
async def health(
    scheduler: UpdateScheduler = Depends(get_scheduler),
    market_client: Optional[DexScreenerClient] = Depends(get_market_client),
):
    if market_client is not None:
        dex_status = await market_client.get_market_status()
    else:
        dex_status = {"status": "unknown", "api": "dexscreener"}

    status = scheduler.status
    store = scheduler.store
    return {
        "status": "healthy" if status.is_running else "starting",
        "timestamp": _now_iso(),
        "uptime": status.uptime_s,
        "updates": status.update_count,
        "dexscreener": dex_status,
        "stellar": {
            "contract": "deployed" if status.contract_configured else "not_deployed",
            "provider": "configured" if status.provider_configured else "not_configured",
            "network": status.network,
        },
        "data": {
            "prices": store.count(),
            "lastUpdate": _iso(status.last_update),
            "historyPoints": store.history_points(),
        },
    }


@router.get("/prices")
def list_prices(
    detailed: bool = False,
    scheduler: UpdateScheduler = Depends(get_scheduler),
):
    store = scheduler.store
    prices = {symbol: rec.to_public() for symbol, rec in store.all().items()}
    body = {
        "prices": prices,
        "timestamp": _now_iso(),
        "count": len(prices),
        "source": "dexscreener",
    }
    if detailed:
        body["metadata"] = {
            "updateCount": scheduler.status.update_count,
            "averageUpdateTime": scheduler.status.average_update_ms,
            "priceHistory": {
                symbol: {k: _iso(v) if isinstance(v, datetime) else v for k, v in info.items()}
                for symbol, info in store.summary().items()
            },
        }
    return body


@router.get("/prices/{symbol}")
def get_price(symbol: str, scheduler: UpdateScheduler = Depends(get_scheduler)):
    sym = symbol.upper()
    store = scheduler.store
    record = store.get(sym)
    if record is None:
        return JSONResponse(
            status_code=404,
            content={"error": f"Price for {sym} not found", "available": store.symbols()},
        )

    history = store.get_history(sym, SYMBOL_HISTORY_POINTS)
    return {
        **record.to_public(),
        "history": [h.model_dump(mode="json") for h in history],
    }


@router.post("/submit")
@limiter.limit(SUBMIT_RATE_LIMIT)
async def submit_price(
    request: Request,
    payload: ManualSubmission,
    scheduler: UpdateScheduler = Depends(get_scheduler),
):
    try:
        record = await scheduler.submit_manual(payload.symbol, payload.price, payload.source)
    except PriceValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e), "example": SUBMIT_EXAMPLE})
    except LedgerNotConfiguredError as e:
        return JSONResponse(
            status_code=503,
            content={
                "error": str(e),
                "details": {"provider": e.provider, "contract": e.contract},
            },
        )
    except SubmissionError as e:
        logger.warning("Manual submission failed: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"success": True, "transaction": record.tx_hash, "data": record.to_public()}


@router.get("/history/{symbol}")
def get_history(
    symbol: str,
    limit: Optional[str] = None,
    scheduler: UpdateScheduler = Depends(get_scheduler),
):
    sym = symbol.upper()
    n = safe_int(limit, DEFAULT_HISTORY_LIMIT)
    history = scheduler.store.get_history(sym, n)
    return {
        "symbol": sym,
        "history": [h.model_dump(mode="json") for h in history],
        "count": len(history),
        "timespan": (
            {"start": _iso(history[0].timestamp), "end": _iso(history[-1].timestamp)}
            if history
            else None
        ),
    }


@router.get("/status")
def service_status(scheduler: UpdateScheduler = Depends(get_scheduler)):
    return {
        "service": "Stellar Price Oracle",
        "version": "1.0.0",
        "endpoints": {
            "GET /health": "Service health status",
            "GET /prices": "All current prices (add ?detailed=true for metadata)",
            "GET /prices/:symbol": "Specific token price with history",
            "GET /history/:symbol": "Price history for token (add ?limit=N)",
            "POST /submit": "Manual price submission",
            "GET /status": "This endpoint",
        },
        "tokens": tracked_symbols(scheduler.assets),
        "rateLimits": {
            "dexscreener": "300 requests/minute",
            "manual_submissions": SUBMIT_RATE_LIMIT,
        },
    }
