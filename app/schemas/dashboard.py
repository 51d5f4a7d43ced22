from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from app.schemas.coin import Coin, SortOption, Statistic


class DashboardState(BaseModel):
    """Read-only view of the pipeline's current inputs and outputs."""

    search_text: str
    sort_option: SortOption
    is_loading: bool
    all_coins: List[Coin]
    portfolio_coins: List[Coin]
    statistics: List[Statistic]


class SearchUpdate(BaseModel):
    text: str = Field("", max_length=200)


class SortUpdate(BaseModel):
    option: SortOption


class HoldingUpdate(BaseModel):
    amount: float = Field(..., ge=0)


class ReloadResponse(BaseModel):
    accepted: bool
    is_loading: bool
