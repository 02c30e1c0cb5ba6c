# market_gateway/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI

from market_gateway.api.coins import router as coins_router
from market_gateway.api.health import router as health_router
from market_gateway.api.market import router as market_router
from market_gateway.api.portfolio import router as portfolio_router

from market_gateway.config.settings import get_settings
from market_gateway.services.aggregators import MarketAggregator
from market_gateway.services.coingecko import CoinGeckoClient
from market_gateway.utils.cache import CacheStore

logger = logging.getLogger("market_gateway")


app = FastAPI(title="Crypto Market Gateway")

# Routers
app.include_router(health_router)
app.include_router(market_router)
app.include_router(coins_router)
app.include_router(portfolio_router)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "Crypto Market Gateway"}


@app.on_event("startup")
async def on_startup() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    # one cache per process; adapters and aggregators share it
    cache = CacheStore()
    client = CoinGeckoClient.from_settings(settings, cache=cache)
    app.state.client = client
    app.state.aggregator = MarketAggregator(
        client,
        page_size=settings.MARKET_PAGE_SIZE,
        max_records=settings.MARKET_MAX_RECORDS,
        batch_delay=settings.BATCH_DELAY_SECONDS,
    )
    logger.info(
        "gateway started | base_url=%s | ttl_s=%s/%s | single_flight=%s",
        settings.COINGECKO_BASE_URL,
        settings.CACHE_TTL_SECONDS,
        settings.CACHE_TTL_LONG_SECONDS,
        settings.SINGLE_FLIGHT_ENABLED,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    client = getattr(app.state, "client", None)
    if client is not None:
        await client.aclose()
    app.state.client = None
    app.state.aggregator = None
