from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from market_gateway.schemas.envelope import Envelope
from market_gateway.services.aggregators import MarketAggregator
from market_gateway.services.coingecko import CoinGeckoClient

CACHE_CONTROL = "public, s-maxage=30, stale-while-revalidate=60"


# Built once at startup in main.py and stored on app.state
def get_client(request: Request) -> CoinGeckoClient:
    return request.app.state.client


def get_aggregator(request: Request) -> MarketAggregator:
    return request.app.state.aggregator


def envelope_response(env: Envelope, *, cache_control: str | None = None) -> JSONResponse:
    headers = {"Cache-Control": cache_control} if cache_control else None
    return JSONResponse(
        status_code=200 if env.success else 500,
        content=env.to_payload(),
        headers=headers,
    )


def error_response(message: str, *, status_code: int = 400, data: Any = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "data": data},
    )
