from __future__ import annotations

import asyncio

import httpx
import pytest

from market_gateway.schemas.market import NormalizedGlobalSnapshot, NormalizedMarketRecord
from conftest import market_row


def _json(payload, status: int = 200):
    return lambda request: httpx.Response(status, json=payload)


@pytest.mark.asyncio
async def test_miss_then_hit(make_gateway):
    client, seen = make_gateway(_json({"bitcoin": {"usd": 50000}}))

    first = await client.get_simple_price(["bitcoin"], "usd")
    second = await client.get_simple_price("bitcoin", ["usd"])

    assert first.success and first.cached is False
    assert second.success and second.cached is True
    assert second.data == {"bitcoin": {"usd": 50000}}
    assert len(seen) == 1
    assert seen[0].url.path == "/api/v3/simple/price"
    assert seen[0].url.params["ids"] == "bitcoin"
    assert seen[0].url.params["include_24hr_change"] == "false"


@pytest.mark.asyncio
async def test_short_ttl_expires_long_ttl_survives(make_gateway, clock):
    client, seen = make_gateway(_json([{"id": "bitcoin"}]))

    await client.get_simple_price("bitcoin")
    await client.get_coins_list()
    clock.advance(120)
    price = await client.get_simple_price("bitcoin")
    listing = await client.get_coins_list()

    assert price.cached is False
    assert listing.cached is True
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_option_order_does_not_fragment_cache(make_gateway):
    client, seen = make_gateway(_json([market_row("bitcoin")]))

    await client.get_coins_markets(page=1, per_page=50, category="layer-1")
    again = await client.get_coins_markets(category="layer-1", per_page=50, page=1)

    assert again.cached is True
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_markets_are_transformed_before_caching(make_gateway):
    client, seen = make_gateway(_json([market_row("bitcoin"), market_row("ethereum")]))

    result = await client.get_coins_markets(ids=["bitcoin", "ethereum"], per_page=2)

    assert all(isinstance(r, NormalizedMarketRecord) for r in result.data)
    assert [r.rank for r in result.data] == [1, 2]
    assert seen[0].url.params["ids"] == "bitcoin,ethereum"
    assert seen[0].url.params["sparkline"] == "true"
    assert seen[0].url.params["price_change_percentage"] == "1h,24h,7d"


@pytest.mark.asyncio
async def test_failure_becomes_error_envelope(make_gateway):
    client, seen = make_gateway(_json({"error": "coin not found"}, status=404))

    result = await client.get_coin_details("not-a-coin")

    assert result.success is False
    assert result.data is None
    assert result.error == "HTTP 404: Not Found"
    assert len(seen) == 1
    assert len(client.cache) == 0


@pytest.mark.asyncio
async def test_exhausted_rate_limit_becomes_error_envelope(make_gateway, recording_sleep):
    client, seen = make_gateway(lambda r: httpx.Response(429))

    result = await client.get_global_data()

    assert result.success is False
    assert "after 3 attempts" in result.error
    assert len(seen) == 3
    assert recording_sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_missing_required_argument_skips_network(make_gateway):
    client, seen = make_gateway(_json({}))

    assert (await client.get_simple_price([])).error == "ids is required"
    assert (await client.get_coin_ohlc("")).error == "coin_id is required"
    assert (await client.get_coin_market_chart_range("bitcoin", "usd", None, 10)).error == "from_ts is required"
    assert seen == []


@pytest.mark.asyncio
async def test_path_building_for_contract_and_token_endpoints(make_gateway):
    client, seen = make_gateway(_json({}))
    address = "0x" + "ab" * 20

    await client.get_coin_by_contract("ethereum", address)
    await client.get_contract_market_chart_range("ethereum", address, "usd", 1700000000, 1700086400)
    await client.get_token_list("ethereum")
    await client.get_coin_history("bitcoin", "30-12-2023")

    paths = [r.url.path for r in seen]
    assert paths == [
        f"/api/v3/coins/ethereum/contract/{address}",
        f"/api/v3/coins/ethereum/contract/{address}/market_chart/range",
        "/api/v3/token_lists/ethereum/all.json",
        "/api/v3/coins/bitcoin/history",
    ]
    assert seen[1].url.params["from"] == "1700000000"
    assert seen[3].url.params["date"] == "30-12-2023"


@pytest.mark.asyncio
async def test_global_and_ohlc_transform(make_gateway):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/global"):
            return httpx.Response(200, json={"data": {"markets": 900}})
        return httpx.Response(200, json=[[1700000000000, 1, 2, 0.5, 1.5]])

    client, _ = make_gateway(handler)

    glob = await client.get_global_data()
    ohlc = await client.get_coin_ohlc("bitcoin", days=7)

    assert isinstance(glob.data, NormalizedGlobalSnapshot)
    assert glob.data.markets == 900
    assert ohlc.data[0].timestamp == 1700000000000
    assert ohlc.data[0].close == 1.5


@pytest.mark.asyncio
async def test_clear_cache_forces_refetch(make_gateway):
    client, seen = make_gateway(_json({"coins": []}))

    await client.get_trending_data()
    assert client.clear_cache("trend") == 1
    again = await client.get_trending_data()

    assert again.cached is False
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_concurrent_cold_calls_both_fetch_by_default(make_gateway):
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0)
        return httpx.Response(200, json={"data": {}})

    client, seen = make_gateway(slow)

    results = await asyncio.gather(client.get_global_data(), client.get_global_data())

    assert all(r.success and r.cached is False for r in results)
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_single_flight_coalesces_concurrent_cold_calls(make_gateway):
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0)
        return httpx.Response(200, json={"data": {}})

    client, seen = make_gateway(slow, single_flight=True)

    results = await asyncio.gather(*[client.get_global_data() for _ in range(3)])

    assert all(r.success for r in results)
    assert len(seen) == 1
    assert client._inflight == {}


@pytest.mark.asyncio
async def test_single_flight_survives_cancelled_first_caller(make_gateway):
    release = asyncio.Event()

    async def gated(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200, json={"data": {"active_cryptocurrencies": 5}})

    client, seen = make_gateway(gated, single_flight=True)

    first = asyncio.ensure_future(client.get_global_data())
    await asyncio.sleep(0.01)
    second = asyncio.ensure_future(client.get_global_data())
    await asyncio.sleep(0.01)

    first.cancel()
    await asyncio.sleep(0)
    release.set()

    result = await second
    with pytest.raises(asyncio.CancelledError):
        await first

    assert result.success
    assert result.data.active_cryptocurrencies == 5
    assert len(seen) == 1
    assert client._inflight == {}
    assert (await client.get_global_data()).cached is True
