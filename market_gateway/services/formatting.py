"""Display helpers for numbers, prices, percentages and dates."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Optional, Union

ETH_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

_SUFFIXES = (
    (1e12, "T"),
    (1e9, "B"),
    (1e6, "M"),
    (1e3, "K"),
)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_number(num: Optional[float]) -> str:
    """1234567 -> '1.23M'. Values below 1000 keep two decimals."""
    if not _is_number(num) or math.isnan(num):
        return "N/A"
    for threshold, suffix in _SUFFIXES:
        if num >= threshold:
            return f"{num / threshold:.2f}{suffix}"
    return f"{num:.2f}"


def format_price(price: Optional[float]) -> str:
    if not _is_number(price) or not math.isfinite(price):
        return "N/A"
    if price >= 1:
        return f"${price:,.2f}"
    if price >= 0.01:
        return f"${price:.4f}"
    if price >= 0.0001:
        return f"${price:.6f}"
    return f"${price:.8f}"


def format_percentage(pct: Optional[float]) -> str:
    if not _is_number(pct) or math.isnan(pct):
        return "N/A"
    sign = "+" if pct >= 0 else ""
    return f"{sign}{pct:.2f}%"


def _from_epoch_ms(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp / 1000.0, tz=timezone.utc)


def format_date(timestamp: Optional[float]) -> str:
    """Epoch milliseconds -> 'Jan 5, 2024' (UTC)."""
    if not timestamp:
        return "N/A"
    dt = _from_epoch_ms(timestamp)
    return f"{_MONTHS[dt.month - 1]} {dt.day}, {dt.year}"


def format_datetime(timestamp: Optional[float]) -> str:
    """Epoch milliseconds -> 'Jan 5, 2024, 03:07 PM' (UTC)."""
    if not timestamp:
        return "N/A"
    dt = _from_epoch_ms(timestamp)
    hour = dt.hour % 12 or 12
    am_pm = "AM" if dt.hour < 12 else "PM"
    return f"{format_date(timestamp)}, {hour:02d}:{dt.minute:02d} {am_pm}"


def calculate_percentage_change(old_value: Optional[float], new_value: Optional[float]) -> float:
    if not old_value or new_value is None:
        return 0.0
    return (new_value - old_value) / old_value * 100


def get_interval_for_days(days: float) -> Optional[str]:
    """Chart interval hint; intraday granularity is only available up to one day."""
    if days <= 1:
        return None
    return "daily"


def get_ohlc_granularity(days: float) -> Union[int, str]:
    """Map an arbitrary day span onto a `days` value the OHLC endpoint accepts."""
    if days <= 2:
        return 1
    if days <= 30:
        return 7
    if days <= 90:
        return 30
    if days <= 365:
        return 90
    return "max"


def is_valid_ethereum_address(address: Optional[str]) -> bool:
    return isinstance(address, str) and bool(ETH_ADDRESS_RE.match(address))
