"""Normalized records produced from upstream market payloads."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class NormalizedMarketRecord(BaseModel):
    """One row of /coins/markets with derived metrics attached."""

    rank: int
    id: Optional[str] = None
    symbol: str = ""
    name: Optional[str] = None
    image: Optional[str] = None
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    market_cap_rank: Optional[int] = None
    fully_diluted_valuation: Optional[float] = None
    volume_24h: Optional[float] = None
    price_change_1h: float = 0.0
    price_change_24h: float = 0.0
    price_change_7d: float = 0.0
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None
    ath: Optional[float] = None
    ath_change_percentage: Optional[float] = None
    ath_date: Optional[str] = None
    atl: Optional[float] = None
    atl_change_percentage: Optional[float] = None
    atl_date: Optional[str] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    sparkline: List[float] = Field(default_factory=list)
    last_updated: Optional[str] = None

    # derived
    volume_to_market_cap: float = 0.0
    price_volatility: float = 0.0


class NormalizedGlobalSnapshot(BaseModel):
    total_market_cap: float = 0.0
    total_volume_24h: float = 0.0
    btc_dominance: float = 0.0
    eth_dominance: float = 0.0
    active_cryptocurrencies: int = 0
    markets: int = 0
    market_cap_change_24h: float = 0.0
    updated_at: int = 0
    last_updated: str


class TrendingCoin(BaseModel):
    rank: int
    id: Optional[str] = None
    coin_id: Optional[int] = None
    name: Optional[str] = None
    symbol: str = ""
    thumb: Optional[str] = None
    small: Optional[str] = None
    large: Optional[str] = None
    market_cap_rank: Optional[int] = None
    price_btc: Optional[float] = None
    score: Optional[int] = None
    slug: Optional[str] = None
    data: Optional[dict[str, Any]] = None


class TrendingNft(BaseModel):
    rank: int
    id: Optional[str] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    thumb: Optional[str] = None
    nft_contract_id: Optional[int] = None
    native_currency_symbol: Optional[str] = None
    floor_price_in_native_currency: Optional[float] = None
    floor_price_24h_percentage_change: Optional[float] = None


class TrendingCategory(BaseModel):
    rank: int
    id: Optional[int] = None
    name: Optional[str] = None
    market_cap_1h_change: Optional[float] = None
    slug: Optional[str] = None
    coins_count: Optional[int] = None
    data: Optional[dict[str, Any]] = None


class NormalizedTrendingSnapshot(BaseModel):
    coins: List[TrendingCoin] = Field(default_factory=list)
    nfts: List[TrendingNft] = Field(default_factory=list)
    categories: List[TrendingCategory] = Field(default_factory=list)


class OhlcCandle(BaseModel):
    timestamp: int
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None


class PricePoint(BaseModel):
    """Price, market cap and volume (USD) of a coin on a given day."""

    id: str
    date: str
    price: Optional[float] = None
    market_cap: Optional[float] = None
    volume: Optional[float] = None
