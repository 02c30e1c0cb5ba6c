# market_gateway/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


def parse_float(value: str | None, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    return float(value)


def parse_optional(value: str | None) -> Optional[str]:
    if value is None:
        return None
    v = value.strip()
    return v or None


@dataclass(frozen=True)
class Settings:
    COINGECKO_BASE_URL: str = "https://api.coingecko.com/api/v3"
    COINGECKO_API_KEY: Optional[str] = None

    # price/ticker/chart data vs list/metadata data
    CACHE_TTL_SECONDS: float = 90.0
    CACHE_TTL_LONG_SECONDS: float = 300.0

    FETCH_MAX_RETRIES: int = 3
    FETCH_RETRY_BASE_DELAY_SECONDS: float = 1.0
    FETCH_TIMEOUT_SECONDS: float = 10.0

    BATCH_DELAY_SECONDS: float = 0.2
    MARKET_PAGE_SIZE: int = 250
    MARKET_MAX_RECORDS: int = 1444

    SINGLE_FLIGHT_ENABLED: bool = False
    LOG_LEVEL: str = "INFO"

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            COINGECKO_BASE_URL=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3").rstrip("/"),
            COINGECKO_API_KEY=parse_optional(os.getenv("COINGECKO_API_KEY")),
            CACHE_TTL_SECONDS=parse_float(os.getenv("CACHE_TTL_SECONDS"), 90.0),
            CACHE_TTL_LONG_SECONDS=parse_float(os.getenv("CACHE_TTL_LONG_SECONDS"), 300.0),
            FETCH_MAX_RETRIES=parse_int(os.getenv("FETCH_MAX_RETRIES"), 3),
            FETCH_RETRY_BASE_DELAY_SECONDS=parse_float(os.getenv("FETCH_RETRY_BASE_DELAY_SECONDS"), 1.0),
            FETCH_TIMEOUT_SECONDS=parse_float(os.getenv("FETCH_TIMEOUT_SECONDS"), 10.0),
            BATCH_DELAY_SECONDS=parse_float(os.getenv("BATCH_DELAY_SECONDS"), 0.2),
            MARKET_PAGE_SIZE=parse_int(os.getenv("MARKET_PAGE_SIZE"), 250),
            MARKET_MAX_RECORDS=parse_int(os.getenv("MARKET_MAX_RECORDS"), 1444),
            SINGLE_FLIGHT_ENABLED=parse_bool(os.getenv("SINGLE_FLIGHT_ENABLED"), False),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
