"""
Pure reshaping of raw upstream JSON into normalized records.

Every function here is total: unexpected shapes and missing or non-numeric
fields never raise, they fall back to None or 0 as the target model declares.
Rank is always the 1-based position in the input; nothing is re-sorted.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from market_gateway.schemas.market import (
    NormalizedGlobalSnapshot,
    NormalizedMarketRecord,
    NormalizedTrendingSnapshot,
    OhlcCandle,
    PricePoint,
    TrendingCategory,
    TrendingCoin,
    TrendingNft,
)
from market_gateway.utils.time import iso_z


# ----------------------------
# Coercion helpers
# ----------------------------
def to_number(value: Any) -> float | None:
    """Float for real numbers; None for bools, strings, containers and NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


def _path(obj: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _upper(value: Any) -> str:
    return value.upper() if isinstance(value, str) else ""


# ----------------------------
# Derived metrics
# ----------------------------
def volume_to_market_cap(volume: float | None, market_cap: float | None) -> float:
    if not volume or not market_cap:
        return 0.0
    return volume / market_cap


def price_volatility(high: float | None, low: float | None, price: float | None) -> float:
    if not high or not low or not price:
        return 0.0
    return abs(high - low) / price * 100


# ----------------------------
# Markets
# ----------------------------
def _market_record(coin: Any, rank: int) -> NormalizedMarketRecord:
    if not isinstance(coin, dict):
        coin = {}

    price = to_number(coin.get("current_price"))
    market_cap = to_number(coin.get("market_cap"))
    volume = to_number(coin.get("total_volume"))
    high = to_number(coin.get("high_24h"))
    low = to_number(coin.get("low_24h"))

    raw_sparkline = _path(coin, "sparkline_in_7d", "price")
    sparkline = (
        [p for p in (to_number(v) for v in raw_sparkline) if p is not None]
        if isinstance(raw_sparkline, list)
        else []
    )

    return NormalizedMarketRecord(
        rank=rank,
        id=_str(coin.get("id")),
        symbol=_upper(coin.get("symbol")),
        name=_str(coin.get("name")),
        image=_str(coin.get("image")),
        current_price=price,
        market_cap=market_cap,
        market_cap_rank=_int(coin.get("market_cap_rank")),
        fully_diluted_valuation=to_number(coin.get("fully_diluted_valuation")),
        volume_24h=volume,
        price_change_1h=to_number(coin.get("price_change_percentage_1h_in_currency")) or 0.0,
        price_change_24h=to_number(coin.get("price_change_percentage_24h")) or 0.0,
        price_change_7d=to_number(coin.get("price_change_percentage_7d_in_currency")) or 0.0,
        high_24h=high,
        low_24h=low,
        ath=to_number(coin.get("ath")),
        ath_change_percentage=to_number(coin.get("ath_change_percentage")),
        ath_date=_str(coin.get("ath_date")),
        atl=to_number(coin.get("atl")),
        atl_change_percentage=to_number(coin.get("atl_change_percentage")),
        atl_date=_str(coin.get("atl_date")),
        circulating_supply=to_number(coin.get("circulating_supply")),
        total_supply=to_number(coin.get("total_supply")),
        max_supply=to_number(coin.get("max_supply")),
        sparkline=sparkline,
        last_updated=_str(coin.get("last_updated")),
        volume_to_market_cap=volume_to_market_cap(volume, market_cap),
        price_volatility=price_volatility(high, low, price),
    )


def transform_market_data(raw: Any) -> list[NormalizedMarketRecord]:
    if not isinstance(raw, list):
        return []
    return [_market_record(coin, idx + 1) for idx, coin in enumerate(raw)]


def rerank(records: list[NormalizedMarketRecord]) -> list[NormalizedMarketRecord]:
    """Return copies whose rank matches their 1-based position in records."""
    return [r.model_copy(update={"rank": idx + 1}) for idx, r in enumerate(records)]


# ----------------------------
# Global
# ----------------------------
def transform_global_data(raw: Any, now: datetime | None = None) -> NormalizedGlobalSnapshot:
    data = _path(raw, "data")
    return NormalizedGlobalSnapshot(
        total_market_cap=to_number(_path(data, "total_market_cap", "usd")) or 0.0,
        total_volume_24h=to_number(_path(data, "total_volume", "usd")) or 0.0,
        btc_dominance=to_number(_path(data, "market_cap_percentage", "btc")) or 0.0,
        eth_dominance=to_number(_path(data, "market_cap_percentage", "eth")) or 0.0,
        active_cryptocurrencies=_int(_path(data, "active_cryptocurrencies")) or 0,
        markets=_int(_path(data, "markets")) or 0,
        market_cap_change_24h=to_number(_path(data, "market_cap_change_percentage_24h_usd")) or 0.0,
        updated_at=_int(_path(data, "updated_at")) or 0,
        last_updated=iso_z(now),
    )


# ----------------------------
# Trending
# ----------------------------
def _list(raw: Any, key: str) -> list[Any]:
    value = _path(raw, key)
    return value if isinstance(value, list) else []


def transform_trending_data(raw: Any) -> NormalizedTrendingSnapshot:
    coins = []
    for idx, entry in enumerate(_list(raw, "coins")):
        item = _path(entry, "item") or {}
        coins.append(
            TrendingCoin(
                rank=idx + 1,
                id=_str(_path(item, "id")),
                coin_id=_int(_path(item, "coin_id")),
                name=_str(_path(item, "name")),
                symbol=_upper(_path(item, "symbol")),
                thumb=_str(_path(item, "thumb")),
                small=_str(_path(item, "small")),
                large=_str(_path(item, "large")),
                market_cap_rank=_int(_path(item, "market_cap_rank")),
                price_btc=to_number(_path(item, "price_btc")),
                score=_int(_path(item, "score")),
                slug=_str(_path(item, "slug")),
                data=_dict(_path(item, "data")),
            )
        )

    nfts = [
        TrendingNft(
            rank=idx + 1,
            id=_str(_path(item, "id")),
            name=_str(_path(item, "name")),
            symbol=_str(_path(item, "symbol")),
            thumb=_str(_path(item, "thumb")),
            nft_contract_id=_int(_path(item, "nft_contract_id")),
            native_currency_symbol=_str(_path(item, "native_currency_symbol")),
            floor_price_in_native_currency=to_number(_path(item, "floor_price_in_native_currency")),
            floor_price_24h_percentage_change=to_number(_path(item, "floor_price_24h_percentage_change")),
        )
        for idx, item in enumerate(_list(raw, "nfts"))
    ]

    categories = [
        TrendingCategory(
            rank=idx + 1,
            id=_int(_path(item, "id")),
            name=_str(_path(item, "name")),
            market_cap_1h_change=to_number(_path(item, "market_cap_1h_change")),
            slug=_str(_path(item, "slug")),
            coins_count=_int(_path(item, "coins_count")),
            data=_dict(_path(item, "data")),
        )
        for idx, item in enumerate(_list(raw, "categories"))
    ]

    return NormalizedTrendingSnapshot(coins=coins, nfts=nfts, categories=categories)


# ----------------------------
# OHLC / history
# ----------------------------
def transform_ohlc(raw: Any) -> list[OhlcCandle]:
    """[[ts, o, h, l, c], ...] -> named candles; rows without a timestamp are skipped."""
    if not isinstance(raw, list):
        return []

    candles: list[OhlcCandle] = []
    for row in raw:
        if not isinstance(row, (list, tuple)) or not row:
            continue
        ts = _int(row[0])
        if ts is None:
            continue
        values = [to_number(v) for v in row[1:5]]
        values += [None] * (4 - len(values))
        candles.append(
            OhlcCandle(timestamp=ts, open=values[0], high=values[1], low=values[2], close=values[3])
        )
    return candles


def extract_price_point(coin_id: str, date: str, raw: Any) -> PricePoint:
    market_data = _path(raw, "market_data")
    return PricePoint(
        id=coin_id,
        date=date,
        price=to_number(_path(market_data, "current_price", "usd")),
        market_cap=to_number(_path(market_data, "market_cap", "usd")),
        volume=to_number(_path(market_data, "total_volume", "usd")),
    )
