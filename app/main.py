# app/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI

from app.api.dashboard import router as dashboard_router
from app.api.health import router as health_router

from app.config.settings import get_settings
from app.db import models  # noqa: F401  registers tables on Base
from app.db.session import engine, Base

from app.jobs.refresh import start_refresh_job, stop_refresh_job
from app.schemas.coin import SortOption
from app.services.pipeline import AggregationPipeline
from app.services.sources import (
    CoinGeckoCoinSource,
    CoinGeckoMarketSource,
    LoggingFeedbackSink,
    SqlPortfolioStore,
)

logger = logging.getLogger("crypto_dashboard.main")

app = FastAPI(title="Crypto Portfolio API")

# Routers
app.include_router(health_router)
app.include_router(dashboard_router)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "Crypto Portfolio Dashboard"}


@app.on_event("startup")
async def on_startup() -> None:
    settings = get_settings()
    logging.getLogger("crypto_dashboard").setLevel(settings.LOG_LEVEL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    coin_source = CoinGeckoCoinSource(settings)
    market_source = CoinGeckoMarketSource(settings)
    portfolio_store = SqlPortfolioStore()

    app.state.coin_source = coin_source
    app.state.market_source = market_source
    app.state.pipeline = AggregationPipeline(
        coin_source,
        market_source,
        portfolio_store,
        LoggingFeedbackSink(),
        search_debounce_seconds=settings.SEARCH_DEBOUNCE_SECONDS,
        sort_option=SortOption(settings.DEFAULT_SORT_OPTION),
    )

    await portfolio_store.load()

    # the refresh job performs the first fetch immediately; without it, fetch once
    if not start_refresh_job([coin_source, market_source]):
        coin_source.request_refresh()
        market_source.request_refresh()

    logger.info("dashboard started | sort=%s", settings.DEFAULT_SORT_OPTION)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await stop_refresh_job()

    pipeline = getattr(app.state, "pipeline", None)
    if pipeline is not None:
        pipeline.close()
    app.state.pipeline = None

    for name in ("coin_source", "market_source"):
        source = getattr(app.state, name, None)
        if source is not None:
            await source.close()
