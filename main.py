# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config.assets import TRACKED_ASSETS
from config.logging_config import configure_logging
from config.settings import OracleSettings
from middleware.rate_limit import limiter
from middleware.request_logging import RequestLoggingMiddleware
from routers.oracle_routes import SUBMIT_EXAMPLE, router as oracle_router
from services.ledger.stellar_submitter import SorobanLedgerSubmitter
from services.market_data.dexscreener_client import DexScreenerClient
from services.market_data.rate_limiter import RateLimiter
from services.oracle.price_resolver import PriceResolver
from services.oracle.price_store import PriceStore
from services.oracle.update_scheduler import UpdateScheduler

logger = logging.getLogger(__name__)


def build_scheduler(settings: OracleSettings, market_client: DexScreenerClient) -> UpdateScheduler:
    return UpdateScheduler(
        resolver=PriceResolver(market_client),
        store=PriceStore(history_limit=settings.history_limit),
        submitter=SorobanLedgerSubmitter.from_settings(settings),
        assets=TRACKED_ASSETS,
        interval_s=settings.update_interval_s,
    )


def create_app(
    settings: Optional[OracleSettings] = None,
    *,
    scheduler: Optional[UpdateScheduler] = None,
    market_client: Optional[DexScreenerClient] = None,
    run_scheduler: bool = True,
) -> FastAPI:
    settings = settings or OracleSettings.from_env()

    if market_client is None and scheduler is None:
        market_client = DexScreenerClient(
            RateLimiter(settings.min_request_interval_s),
            base_url=settings.dexscreener_base_url,
            timeout_s=settings.request_timeout_s,
        )
    if scheduler is None:
        scheduler = build_scheduler(settings, market_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if run_scheduler:
            # first cycle runs as a task; startup does not wait for it
            scheduler.start()
            scheduler.tick()
        try:
            yield
        finally:
            if run_scheduler:
                await scheduler.stop()
            if market_client is not None:
                await market_client.aclose()

    app = FastAPI(title="Stellar Price Oracle", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.scheduler = scheduler
    app.state.market_client = market_client
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        if request.url.path == "/submit":
            content = {"error": "Valid symbol and price required", "example": SUBMIT_EXAMPLE}
        else:
            content = {"error": "Invalid request parameters"}
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(oracle_router)
    return app


if __name__ == "__main__":
    configure_logging()
    _settings = OracleSettings.from_env()
    uvicorn.run(create_app(_settings), host="0.0.0.0", port=_settings.port)
