from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from market_gateway.api.deps import envelope_response, error_response, get_aggregator
from market_gateway.schemas.portfolio import PortfolioRequest
from market_gateway.services.aggregators import MarketAggregator

router = APIRouter(prefix="/api", tags=["portfolio"])


@router.post("/portfolio")
async def value_portfolio(
    payload: PortfolioRequest,
    aggregator: MarketAggregator = Depends(get_aggregator),
):
    if not payload.holdings:
        return error_response("holdings must not be empty")
    return envelope_response(await aggregator.calculate_portfolio_value(payload.holdings))


@router.get("/compare")
async def compare_prices(
    ids: str = Query(..., min_length=1, description="Comma separated coin ids"),
    vs_currency: str = "usd",
    aggregator: MarketAggregator = Depends(get_aggregator),
):
    coin_ids = [x.strip() for x in ids.split(",") if x.strip()]
    if not coin_ids:
        return error_response("ids must not be empty")
    return envelope_response(await aggregator.get_price_comparison(coin_ids, vs_currency))
