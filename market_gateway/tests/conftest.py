from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from market_gateway.services.coingecko import CoinGeckoClient
from market_gateway.services.fetcher import ResilientFetcher
from market_gateway.utils.cache import CacheStore

BASE_URL = "https://upstream.test/api/v3"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def market_row(coin_id: str, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": coin_id,
        "symbol": coin_id[:3],
        "name": coin_id.title(),
        "image": f"https://img.test/{coin_id}.png",
        "current_price": 100.0,
        "market_cap": 1_000_000.0,
        "market_cap_rank": 1,
        "total_volume": 50_000.0,
        "high_24h": 110.0,
        "low_24h": 90.0,
        "price_change_percentage_24h": 1.5,
        "sparkline_in_7d": {"price": [98.0, 99.0, 100.0]},
    }
    row.update(overrides)
    return row


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def make_gateway(clock, recording_sleep):
    """
    Build a CoinGeckoClient whose upstream is a handler function.
    Returns (client, requests) where requests collects every httpx.Request sent.
    """
    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any):
        seen: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(_record))
        fetcher = ResilientFetcher(http, max_retries=3, base_delay=1.0, sleep=recording_sleep)
        client = CoinGeckoClient(fetcher, CacheStore(clock=clock), base_url=BASE_URL, **kwargs)
        return client, seen

    return _make
