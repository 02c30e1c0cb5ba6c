"""Endpoint adapters for the public CoinGecko API."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping
from urllib.parse import quote

import httpx

from market_gateway.config.settings import Settings
from market_gateway.schemas.envelope import Envelope
from market_gateway.services.fetcher import ResilientFetcher
from market_gateway.services.transformers import (
    transform_global_data,
    transform_market_data,
    transform_ohlc,
    transform_trending_data,
)
from market_gateway.utils.cache import CacheStore
from market_gateway.utils.determinism import cache_key, join_csv
from market_gateway.utils.time import history_date

logger = logging.getLogger("market_gateway.coingecko")

COINGECKO_URL = "https://api.coingecko.com/api/v3"

Ids = str | Iterable[str]


def _seg(value: Any) -> str:
    return quote(str(value), safe="")


class CoinGeckoClient:
    """
    One method per upstream endpoint category.

    Every method returns an Envelope and never raises: a fresh cache entry is
    returned with cached=True, a miss goes through the fetcher and is stored,
    and any failure on the way becomes Envelope.fail(message).
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        cache: CacheStore,
        *,
        base_url: str = COINGECKO_URL,
        ttl_short: float = 90.0,
        ttl_long: float = 300.0,
        single_flight: bool = False,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.ttl_short = ttl_short
        self.ttl_long = ttl_long
        self.single_flight = single_flight
        self._inflight: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        cache: CacheStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "CoinGeckoClient":
        headers = {}
        if settings.COINGECKO_API_KEY:
            headers["x-cg-demo-api-key"] = settings.COINGECKO_API_KEY
        fetcher = ResilientFetcher(
            http_client,
            max_retries=settings.FETCH_MAX_RETRIES,
            base_delay=settings.FETCH_RETRY_BASE_DELAY_SECONDS,
            timeout=settings.FETCH_TIMEOUT_SECONDS,
            headers=headers,
        )
        return cls(
            fetcher,
            cache if cache is not None else CacheStore(),
            base_url=settings.COINGECKO_BASE_URL,
            ttl_short=settings.CACHE_TTL_SECONDS,
            ttl_long=settings.CACHE_TTL_LONG_SECONDS,
            single_flight=settings.SINGLE_FLIGHT_ENABLED,
        )

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    def clear_cache(self, pattern: str | None = None) -> int:
        return self.cache.clear(pattern)

    # ----------------------------
    # core path
    # ----------------------------
    async def _fetch_and_store(
        self,
        key: str,
        path: str,
        params: Mapping[str, Any] | None,
        transform: Callable[[Any], Any] | None,
    ) -> Any:
        raw = await self.fetcher.fetch(f"{self.base_url}{path}", params)
        data = transform(raw) if transform else raw
        self.cache.put(key, data)
        return data

    async def _load(
        self,
        key: str,
        path: str,
        params: Mapping[str, Any] | None,
        transform: Callable[[Any], Any] | None,
    ) -> Any:
        if not self.single_flight:
            return await self._fetch_and_store(key, path, params, transform)

        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug("joining in-flight request | key=%s", key)
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._fetch_and_store(key, path, params, transform))
        self._inflight[key] = task
        task.add_done_callback(lambda done: self._forget_inflight(key, done))
        # a cancelled caller must not cancel the fetch other waiters share
        return await asyncio.shield(task)

    def _forget_inflight(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _cached_get(
        self,
        endpoint: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        ttl: float,
        transform: Callable[[Any], Any] | None = None,
        key_params: Mapping[str, Any] | None = None,
    ) -> Envelope:
        key = cache_key(endpoint, key_params if key_params is not None else params)

        if self.cache.is_valid(key, ttl):
            logger.debug("cache hit | key=%s", key)
            return Envelope.ok(self.cache.get(key, ttl), cached=True)

        logger.debug("cache miss | key=%s", key)
        try:
            data = await self._load(key, path, params, transform)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("adapter failed | endpoint=%s | err=%s", endpoint, message)
            return Envelope.fail(message)

        return Envelope.ok(data, cached=False)

    @staticmethod
    def _missing(**required: Any) -> Envelope | None:
        for name, value in required.items():
            if value is None or value == "" or value == []:
                return Envelope.fail(f"{name} is required")
        return None

    # ----------------------------
    # 1. simple price
    # ----------------------------
    async def get_simple_price(
        self,
        ids: Ids,
        vs_currencies: Ids = "usd",
        *,
        include_market_cap: bool = False,
        include_24hr_vol: bool = False,
        include_24hr_change: bool = False,
        include_last_updated_at: bool = False,
        precision: str = "full",
    ) -> Envelope:
        ids_str = join_csv(ids)
        vs_str = join_csv(vs_currencies)
        if err := self._missing(ids=ids_str, vs_currencies=vs_str):
            return err

        params = {
            "ids": ids_str,
            "vs_currencies": vs_str,
            "include_market_cap": include_market_cap,
            "include_24hr_vol": include_24hr_vol,
            "include_24hr_change": include_24hr_change,
            "include_last_updated_at": include_last_updated_at,
            "precision": precision,
        }
        return await self._cached_get("simple_price", "/simple/price", params, ttl=self.ttl_short)

    async def get_token_price(
        self,
        asset_platform_id: str,
        contract_addresses: Ids,
        vs_currencies: Ids = "usd",
        *,
        include_market_cap: bool = False,
        include_24hr_vol: bool = False,
        include_24hr_change: bool = False,
        include_last_updated_at: bool = False,
    ) -> Envelope:
        address_str = join_csv(contract_addresses)
        vs_str = join_csv(vs_currencies)
        if err := self._missing(asset_platform_id=asset_platform_id, contract_addresses=address_str):
            return err

        params = {
            "contract_addresses": address_str,
            "vs_currencies": vs_str,
            "include_market_cap": include_market_cap,
            "include_24hr_vol": include_24hr_vol,
            "include_24hr_change": include_24hr_change,
            "include_last_updated_at": include_last_updated_at,
        }
        return await self._cached_get(
            "token_price",
            f"/simple/token_price/{_seg(asset_platform_id)}",
            params,
            ttl=self.ttl_short,
            key_params={"platform": asset_platform_id, **params},
        )

    async def get_supported_vs_currencies(self) -> Envelope:
        return await self._cached_get(
            "supported_vs_currencies", "/simple/supported_vs_currencies", ttl=self.ttl_long
        )

    # ----------------------------
    # 2. coins list & markets
    # ----------------------------
    async def get_coins_list(self, include_platform: bool = False) -> Envelope:
        return await self._cached_get(
            "coins_list",
            "/coins/list",
            {"include_platform": include_platform},
            ttl=self.ttl_long,
        )

    async def get_coins_markets(
        self,
        vs_currency: str = "usd",
        *,
        ids: Ids | None = None,
        category: str | None = None,
        order: str = "market_cap_desc",
        per_page: int = 250,
        page: int = 1,
        sparkline: bool = True,
        price_change_percentage: str | None = "1h,24h,7d",
        locale: str = "en",
    ) -> Envelope:
        params = {
            "vs_currency": vs_currency,
            "ids": join_csv(ids),
            "category": category,
            "order": order,
            "per_page": per_page,
            "page": page,
            "sparkline": sparkline,
            "price_change_percentage": price_change_percentage or None,
            "locale": locale,
        }
        return await self._cached_get(
            "coins_markets",
            "/coins/markets",
            params,
            ttl=self.ttl_short,
            transform=transform_market_data,
        )

    # ----------------------------
    # 3. coin details / tickers
    # ----------------------------
    async def get_coin_details(
        self,
        coin_id: str,
        *,
        localization: bool = True,
        tickers: bool = False,
        market_data: bool = True,
        community_data: bool = True,
        developer_data: bool = True,
        sparkline: bool = True,
    ) -> Envelope:
        if err := self._missing(coin_id=coin_id):
            return err

        params = {
            "localization": localization,
            "tickers": tickers,
            "market_data": market_data,
            "community_data": community_data,
            "developer_data": developer_data,
            "sparkline": sparkline,
        }
        return await self._cached_get(
            "coin",
            f"/coins/{_seg(coin_id)}",
            params,
            ttl=self.ttl_long,
            key_params={"id": coin_id, **params},
        )

    async def get_coin_tickers(
        self,
        coin_id: str,
        *,
        exchange_ids: Ids | None = None,
        include_exchange_logo: bool = False,
        page: int = 1,
        order: str = "trust_score_desc",
        depth: bool = False,
    ) -> Envelope:
        if err := self._missing(coin_id=coin_id):
            return err

        params = {
            "exchange_ids": join_csv(exchange_ids),
            "include_exchange_logo": include_exchange_logo,
            "page": page,
            "order": order,
            "depth": depth,
        }
        return await self._cached_get(
            "coin_tickers",
            f"/coins/{_seg(coin_id)}/tickers",
            params,
            ttl=self.ttl_short,
            key_params={"id": coin_id, **params},
        )

    # ----------------------------
    # 4. history / charts / ohlc
    # ----------------------------
    async def get_coin_history(
        self,
        coin_id: str,
        on: date | datetime | str,
        localization: bool = False,
    ) -> Envelope:
        if err := self._missing(coin_id=coin_id, date=on):
            return err

        params = {"date": history_date(on), "localization": localization}
        return await self._cached_get(
            "coin_history",
            f"/coins/{_seg(coin_id)}/history",
            params,
            ttl=self.ttl_long,
            key_params={"id": coin_id, **params},
        )

    async def get_coin_market_chart(
        self,
        coin_id: str,
        vs_currency: str = "usd",
        days: int | str = 30,
        interval: str | None = None,
    ) -> Envelope:
        if err := self._missing(coin_id=coin_id):
            return err

        params = {"vs_currency": vs_currency, "days": str(days), "interval": interval}
        return await self._cached_get(
            "coin_market_chart",
            f"/coins/{_seg(coin_id)}/market_chart",
            params,
            ttl=self.ttl_short,
            key_params={"id": coin_id, **params},
        )

    async def get_coin_market_chart_range(
        self,
        coin_id: str,
        vs_currency: str = "usd",
        from_ts: int | None = None,
        to_ts: int | None = None,
    ) -> Envelope:
        if err := self._missing(coin_id=coin_id, from_ts=from_ts, to_ts=to_ts):
            return err

        params = {"vs_currency": vs_currency, "from": str(from_ts), "to": str(to_ts)}
        return await self._cached_get(
            "coin_market_chart_range",
            f"/coins/{_seg(coin_id)}/market_chart/range",
            params,
            ttl=self.ttl_long,
            key_params={"id": coin_id, **params},
        )

    async def get_coin_ohlc(
        self,
        coin_id: str,
        vs_currency: str = "usd",
        days: int | str = 30,
    ) -> Envelope:
        if err := self._missing(coin_id=coin_id):
            return err

        params = {"vs_currency": vs_currency, "days": str(days)}
        return await self._cached_get(
            "coin_ohlc",
            f"/coins/{_seg(coin_id)}/ohlc",
            params,
            ttl=self.ttl_short,
            transform=transform_ohlc,
            key_params={"id": coin_id, **params},
        )

    # ----------------------------
    # 5. contract address queries
    # ----------------------------
    async def get_coin_by_contract(self, asset_platform_id: str, contract_address: str) -> Envelope:
        if err := self._missing(asset_platform_id=asset_platform_id, contract_address=contract_address):
            return err

        return await self._cached_get(
            "coin_contract",
            f"/coins/{_seg(asset_platform_id)}/contract/{_seg(contract_address)}",
            ttl=self.ttl_long,
            key_params={"platform": asset_platform_id, "address": contract_address},
        )

    async def get_contract_market_chart(
        self,
        asset_platform_id: str,
        contract_address: str,
        vs_currency: str = "usd",
        days: int | str = 30,
    ) -> Envelope:
        if err := self._missing(asset_platform_id=asset_platform_id, contract_address=contract_address):
            return err

        params = {"vs_currency": vs_currency, "days": str(days)}
        return await self._cached_get(
            "contract_market_chart",
            f"/coins/{_seg(asset_platform_id)}/contract/{_seg(contract_address)}/market_chart",
            params,
            ttl=self.ttl_short,
            key_params={"platform": asset_platform_id, "address": contract_address, **params},
        )

    async def get_contract_market_chart_range(
        self,
        asset_platform_id: str,
        contract_address: str,
        vs_currency: str = "usd",
        from_ts: int | None = None,
        to_ts: int | None = None,
    ) -> Envelope:
        if err := self._missing(
            asset_platform_id=asset_platform_id,
            contract_address=contract_address,
            from_ts=from_ts,
            to_ts=to_ts,
        ):
            return err

        params = {"vs_currency": vs_currency, "from": str(from_ts), "to": str(to_ts)}
        return await self._cached_get(
            "contract_market_chart_range",
            f"/coins/{_seg(asset_platform_id)}/contract/{_seg(contract_address)}/market_chart/range",
            params,
            ttl=self.ttl_long,
            key_params={"platform": asset_platform_id, "address": contract_address, **params},
        )

    # ----------------------------
    # 6. platforms, token lists, categories
    # ----------------------------
    async def get_asset_platforms(self, filter_by: str | None = None) -> Envelope:
        return await self._cached_get(
            "asset_platforms",
            "/asset_platforms",
            {"filter": filter_by},
            ttl=self.ttl_long,
        )

    async def get_token_list(self, asset_platform_id: str) -> Envelope:
        if err := self._missing(asset_platform_id=asset_platform_id):
            return err

        return await self._cached_get(
            "token_list",
            f"/token_lists/{_seg(asset_platform_id)}/all.json",
            ttl=self.ttl_long,
            key_params={"platform": asset_platform_id},
        )

    async def get_coin_categories_list(self) -> Envelope:
        return await self._cached_get(
            "coin_categories_list", "/coins/categories/list", ttl=self.ttl_long
        )

    async def get_coin_categories(self, order: str = "market_cap_desc") -> Envelope:
        return await self._cached_get(
            "coin_categories",
            "/coins/categories",
            {"order": order},
            ttl=self.ttl_short,
        )

    # ----------------------------
    # 7. global / trending
    # ----------------------------
    async def get_global_data(self) -> Envelope:
        return await self._cached_get(
            "global", "/global", ttl=self.ttl_short, transform=transform_global_data
        )

    async def get_trending_data(self) -> Envelope:
        return await self._cached_get(
            "trending", "/search/trending", ttl=self.ttl_short, transform=transform_trending_data
        )
