from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from market_gateway.api.deps import (
    CACHE_CONTROL,
    envelope_response,
    get_aggregator,
    get_client,
)
from market_gateway.schemas.envelope import Envelope
from market_gateway.services.aggregators import MAX_MARKET_RECORDS, PAGE_SIZE, MarketAggregator
from market_gateway.services.coingecko import CoinGeckoClient

router = APIRouter(prefix="/api", tags=["market"])

TOP_CATEGORIES = 12


@router.get("/market")
async def get_market(
    limit: int = Query(250, ge=1),
    category: str | None = None,
    client: CoinGeckoClient = Depends(get_client),
    aggregator: MarketAggregator = Depends(get_aggregator),
):
    """
    Top coins with live market data.
    Example: /api/market?limit=500  or  /api/market?category=layer-1&limit=50
    A category view is a single upstream page, so its limit is capped at one page.
    """
    limit = min(limit, MAX_MARKET_RECORDS)

    if category:
        result = await client.get_coins_markets(
            category=category,
            per_page=min(limit, PAGE_SIZE),
            page=1,
            sparkline=True,
            price_change_percentage="1h,24h,7d",
        )
    else:
        result = await aggregator.get_market_data(limit)

    if not result.success:
        result = result.model_copy(update={"data": []}).with_meta()
    return envelope_response(result, cache_control=CACHE_CONTROL)


@router.get("/global")
async def get_global(client: CoinGeckoClient = Depends(get_client)):
    result = await client.get_global_data()
    return envelope_response(result, cache_control=CACHE_CONTROL)


@router.get("/trending")
async def get_trending(client: CoinGeckoClient = Depends(get_client)):
    result = await client.get_trending_data()
    return envelope_response(result, cache_control=CACHE_CONTROL)


@router.get("/overview")
async def get_overview(aggregator: MarketAggregator = Depends(get_aggregator)):
    return envelope_response(await aggregator.get_market_overview())


@router.get("/analytics/gainers-losers")
async def get_gainers_losers(
    limit: int = Query(10, ge=1, le=125),
    aggregator: MarketAggregator = Depends(get_aggregator),
):
    return envelope_response(await aggregator.get_gainers_losers(limit))


@router.get("/analytics/categories")
async def get_categories(client: CoinGeckoClient = Depends(get_client)):
    result = await client.get_coin_categories("market_cap_desc")
    if not result.success:
        return envelope_response(result)

    data = result.data if isinstance(result.data, list) else []
    return envelope_response(Envelope.ok(data[:TOP_CATEGORIES], meta=result.meta))


@router.get("/analytics/categories/{category_id}")
async def get_category_coins(
    category_id: str,
    limit: int = Query(100, ge=1, le=250),
    page: int = Query(1, ge=1),
    order: str = "market_cap_desc",
    aggregator: MarketAggregator = Depends(get_aggregator),
):
    result = await aggregator.get_coins_by_category(category_id, limit=limit, page=page, order=order)
    return envelope_response(result)
