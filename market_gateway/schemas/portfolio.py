"""Pydantic models for portfolio and ROI contracts."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class Holding(BaseModel):
    """Caller-supplied position. Input only, never stored."""

    coin_id: str = Field(..., min_length=1, description="Upstream coin id, e.g. bitcoin")
    amount: float = Field(..., ge=0.0)


class PortfolioRequest(BaseModel):
    holdings: List[Holding] = Field(default_factory=list)


class PortfolioPosition(BaseModel):
    coin_id: str
    amount: float
    price: float
    value: float
    change_24h: float
    value_change_24h: float


class PortfolioValuation(BaseModel):
    holdings: List[PortfolioPosition]
    total_value: float
    total_change_24h: float
    total_change_24h_percent: float
    timestamp: str


class RoiReport(BaseModel):
    id: str
    start_date: str
    end_date: str
    start_price: Optional[float] = None
    end_price: Optional[float] = None
    roi: float
    roi_formatted: str
