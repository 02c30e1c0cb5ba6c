from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from market_gateway.api.deps import envelope_response, error_response, get_aggregator, get_client
from market_gateway.services.aggregators import MarketAggregator
from market_gateway.services.coingecko import CoinGeckoClient

router = APIRouter(prefix="/api/coin", tags=["coin"])


@router.get("/{coin_id}")
async def get_coin(coin_id: str, client: CoinGeckoClient = Depends(get_client)):
    if not coin_id.strip():
        return error_response("Coin ID is required")

    result = await client.get_coin_details(coin_id)
    if not result.success:
        return envelope_response(result)
    return envelope_response(result.with_meta())


@router.get("/{coin_id}/full")
async def get_coin_full(coin_id: str, aggregator: MarketAggregator = Depends(get_aggregator)):
    return envelope_response(await aggregator.get_comprehensive_coin_data(coin_id))


@router.get("/{coin_id}/tickers")
async def get_coin_tickers(
    coin_id: str,
    page: int = Query(1, ge=1),
    client: CoinGeckoClient = Depends(get_client),
):
    result = await client.get_coin_tickers(coin_id, page=page)
    return envelope_response(result.with_meta() if result.success else result)


@router.get("/{coin_id}/ohlc")
async def get_coin_ohlc(
    coin_id: str,
    days: str = "7",
    vs_currency: str = "usd",
    client: CoinGeckoClient = Depends(get_client),
):
    """
    Candles for charting.
    Example: /api/coin/bitcoin/ohlc?days=30
    """
    result = await client.get_coin_ohlc(coin_id, vs_currency, days)
    return envelope_response(result.with_meta() if result.success else result)


@router.get("/{coin_id}/roi")
async def get_coin_roi(
    coin_id: str,
    start: date,
    end: date,
    aggregator: MarketAggregator = Depends(get_aggregator),
):
    """
    Percentage change between two calendar days.
    Example: /api/coin/bitcoin/roi?start=2024-01-01&end=2024-06-01
    """
    if start >= end:
        return error_response("start must be earlier than end")
    return envelope_response(await aggregator.calculate_roi(coin_id, start, end))
