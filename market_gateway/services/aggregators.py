"""
Composite views built from several endpoint adapters.

Independent adapter calls are issued concurrently with asyncio.gather, whose
result list follows issue order, so output ordering never depends on which
request finished first. Fan-out is all-or-nothing: one failed branch fails
the whole call and the successful branches are discarded.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Iterable, Sequence

from market_gateway.schemas.envelope import Envelope
from market_gateway.schemas.market import NormalizedMarketRecord
from market_gateway.schemas.portfolio import (
    Holding,
    PortfolioPosition,
    PortfolioValuation,
    RoiReport,
)
from market_gateway.services.coingecko import CoinGeckoClient
from market_gateway.services.formatting import calculate_percentage_change, format_percentage
from market_gateway.services.transformers import extract_price_point, rerank, to_number
from market_gateway.utils.time import history_date, iso_z

logger = logging.getLogger("market_gateway.aggregators")

PAGE_SIZE = 250
MAX_MARKET_RECORDS = 1444
SEARCH_LIMIT = 50


def _first_failure(branches: dict[str, Envelope]) -> Envelope | None:
    failed = [(name, env) for name, env in branches.items() if not env.success]
    if not failed:
        return None
    detail = "; ".join(f"{name}: {env.error}" for name, env in failed)
    return Envelope.fail(f"Failed to fetch {detail}")


async def _gather_named(calls: dict[str, Awaitable[Envelope]]) -> dict[str, Envelope]:
    results = await asyncio.gather(*calls.values())
    return dict(zip(calls.keys(), results))


class MarketAggregator:
    def __init__(
        self,
        client: CoinGeckoClient,
        *,
        page_size: int = PAGE_SIZE,
        max_records: int = MAX_MARKET_RECORDS,
        batch_delay: float = 0.2,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.page_size = page_size
        self.max_records = max_records
        self.batch_delay = batch_delay
        self._sleep = sleep

    # ----------------------------
    # Paginated markets
    # ----------------------------
    async def get_market_data(self, limit: int | float = 250) -> Envelope:
        """
        Fetch the top `limit` coins by market cap across as many pages as needed.
        Pages are requested concurrently and concatenated in page order.
        """
        effective = self.max_records if math.isinf(limit) else min(int(limit), self.max_records)
        if effective <= 0:
            return Envelope.ok([], meta={"count": 0, "timestamp": iso_z(), "source": "CoinGecko"})

        total_pages = math.ceil(effective / self.page_size)
        pages = await asyncio.gather(
            *[
                self.client.get_coins_markets(
                    per_page=self.page_size,
                    page=page,
                    sparkline=True,
                    price_change_percentage="1h,24h,7d",
                )
                for page in range(1, total_pages + 1)
            ]
        )

        if failure := _first_failure({f"page {i + 1}": env for i, env in enumerate(pages)}):
            return failure

        combined: list[NormalizedMarketRecord] = []
        for env in pages:
            combined.extend(env.data or [])
        combined = rerank(combined[:effective])

        return Envelope.ok(
            combined,
            meta={"count": len(combined), "timestamp": iso_z(), "source": "CoinGecko"},
        )

    # ----------------------------
    # Composite views
    # ----------------------------
    async def get_comprehensive_coin_data(self, coin_id: str) -> Envelope:
        if not coin_id:
            return Envelope.fail("coin_id is required")

        branches = await _gather_named(
            {
                "details": self.client.get_coin_details(coin_id, tickers=False, market_data=True),
                "tickers": self.client.get_coin_tickers(coin_id, page=1),
                "chart7d": self.client.get_coin_market_chart(coin_id, "usd", 7),
                "ohlc7d": self.client.get_coin_ohlc(coin_id, "usd", 7),
            }
        )
        if failure := _first_failure(branches):
            return failure

        return Envelope.ok({name: env.data for name, env in branches.items()})

    async def get_market_overview(self) -> Envelope:
        branches = await _gather_named(
            {
                "global": self.client.get_global_data(),
                "trending": self.client.get_trending_data(),
                "top_coins": self.client.get_coins_markets(per_page=10, page=1),
            }
        )
        if failure := _first_failure(branches):
            return failure

        return Envelope.ok(
            {name: env.data for name, env in branches.items()},
            meta={"timestamp": iso_z()},
        )

    async def get_coins_by_category(
        self,
        category_id: str,
        *,
        limit: int = 100,
        page: int = 1,
        order: str = "market_cap_desc",
        sparkline: bool = True,
    ) -> Envelope:
        if not category_id:
            return Envelope.fail("category_id is required")

        markets = await self.client.get_coins_markets(
            category=category_id,
            per_page=limit,
            page=page,
            order=order,
            sparkline=sparkline,
        )
        if not markets.success:
            return Envelope.fail(markets.error)

        return Envelope.ok(
            markets.data,
            meta={"category": category_id, "count": len(markets.data), "timestamp": iso_z()},
        )

    async def get_gainers_losers(self, limit: int = 10) -> Envelope:
        markets = await self.client.get_coins_markets(
            per_page=250,
            page=1,
            sparkline=False,
            price_change_percentage="24h",
        )
        if not markets.success:
            return Envelope.fail(f"Failed to fetch market data: {markets.error}")

        ranked = sorted(markets.data, key=lambda r: r.price_change_24h, reverse=True)
        gainers = ranked[:limit] if limit > 0 else []
        losers = list(reversed(ranked[-limit:])) if limit > 0 else []

        return Envelope.ok(
            {"gainers": gainers, "losers": losers},
            meta={"timestamp": iso_z()},
        )

    async def get_price_comparison(self, coin_ids: Sequence[str], vs_currency: str = "usd") -> Envelope:
        prices = await self.client.get_simple_price(
            list(coin_ids),
            vs_currency,
            include_market_cap=True,
            include_24hr_vol=True,
            include_24hr_change=True,
            include_last_updated_at=True,
        )
        if not prices.success:
            return Envelope.fail(prices.error)

        return Envelope.ok(
            prices.data,
            meta={"coins": list(coin_ids), "currency": vs_currency, "timestamp": iso_z()},
        )

    # ----------------------------
    # History / ROI
    # ----------------------------
    async def get_price_at_date(self, coin_id: str, on: date | datetime | str) -> Envelope:
        formatted = history_date(on)
        history = await self.client.get_coin_history(coin_id, formatted)
        if not history.success:
            return Envelope.fail(f"Failed to fetch historical data: {history.error}")

        return Envelope.ok(extract_price_point(coin_id, formatted, history.data))

    async def calculate_roi(
        self,
        coin_id: str,
        start: date | datetime | str,
        end: date | datetime | str,
    ) -> Envelope:
        branches = await _gather_named(
            {
                "start price": self.get_price_at_date(coin_id, start),
                "end price": self.get_price_at_date(coin_id, end),
            }
        )
        if failure := _first_failure(branches):
            return failure

        start_point = branches["start price"].data
        end_point = branches["end price"].data
        roi = calculate_percentage_change(start_point.price, end_point.price)

        return Envelope.ok(
            RoiReport(
                id=coin_id,
                start_date=start_point.date,
                end_date=end_point.date,
                start_price=start_point.price,
                end_price=end_point.price,
                roi=roi,
                roi_formatted=format_percentage(roi),
            )
        )

    # ----------------------------
    # Portfolio
    # ----------------------------
    async def calculate_portfolio_value(self, holdings: Iterable[Holding | dict[str, Any]]) -> Envelope:
        try:
            parsed = [h if isinstance(h, Holding) else Holding.model_validate(h) for h in holdings]
        except ValueError as exc:
            return Envelope.fail(f"Invalid holdings: {exc}")

        if not parsed:
            return Envelope.fail("holdings is required")

        prices = await self.client.get_simple_price(
            [h.coin_id for h in parsed],
            "usd",
            include_market_cap=True,
            include_24hr_change=True,
        )
        if not prices.success:
            return Envelope.fail(f"Failed to fetch prices: {prices.error}")

        quotes = prices.data if isinstance(prices.data, dict) else {}
        positions: list[PortfolioPosition] = []
        for holding in parsed:
            quote = quotes.get(holding.coin_id)
            price = to_number(quote.get("usd")) if isinstance(quote, dict) else None
            if price is None or not math.isfinite(price):
                logger.debug("no price for holding | coin=%s", holding.coin_id)
                continue

            value = holding.amount * price
            change = to_number(quote.get("usd_24h_change")) or 0.0
            if not math.isfinite(change):
                change = 0.0
            positions.append(
                PortfolioPosition(
                    coin_id=holding.coin_id,
                    amount=holding.amount,
                    price=price,
                    value=value,
                    change_24h=change,
                    value_change_24h=value * change / 100,
                )
            )

        total_value = sum(p.value for p in positions)
        total_change = sum(p.value_change_24h for p in positions)
        total_change_pct = total_change / total_value * 100 if total_value else 0.0

        return Envelope.ok(
            PortfolioValuation(
                holdings=positions,
                total_value=total_value,
                total_change_24h=total_change,
                total_change_24h_percent=total_change_pct,
                timestamp=iso_z(),
            )
        )

    # ----------------------------
    # Pacing / local helpers
    # ----------------------------
    async def batch_requests(
        self,
        requests: Sequence[Callable[[], Awaitable[Envelope]]],
        delay: float | None = None,
    ) -> list[Envelope]:
        """
        Run request factories one after another with a fixed pause between them.
        A factory that raises contributes a failed envelope; the rest still run.
        """
        pause = self.batch_delay if delay is None else delay
        results: list[Envelope] = []
        for idx, request in enumerate(requests):
            try:
                results.append(await request())
            except Exception as exc:
                logger.warning("batch request failed | index=%d | err=%s", idx, exc)
                results.append(Envelope.fail(str(exc) or exc.__class__.__name__))
            if idx < len(requests) - 1:
                await self._sleep(pause)
        return results


def search_coins(query: str | None, coins_list: Iterable[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Case-insensitive substring match on id, symbol or name (first 50 hits)."""
    if not query or not coins_list:
        return []

    needle = query.lower()
    hits: list[dict[str, Any]] = []
    for coin in coins_list:
        fields = (coin.get("id"), coin.get("symbol"), coin.get("name"))
        if any(isinstance(f, str) and needle in f.lower() for f in fields):
            hits.append(coin)
            if len(hits) >= SEARCH_LIMIT:
                break
    return hits
