from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class SortOption(str, Enum):
    """Orderings offered by the dashboard.

    ``holdings`` and ``holdings_reversed`` only order the portfolio list; the
    general coin list falls back to rank order for them.
    """

    RANK = "rank"
    RANK_REVERSED = "rank_reversed"
    HOLDINGS = "holdings"
    HOLDINGS_REVERSED = "holdings_reversed"
    PRICE = "price"
    PRICE_REVERSED = "price_reversed"


class Coin(BaseModel):
    """One row of the CoinGecko markets payload, plus the user's holdings."""

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str
    name: str
    image: Optional[str] = None
    current_price: float
    market_cap: Optional[float] = None
    rank: int = 0
    total_volume: Optional[float] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None
    price_change_24h: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    current_holdings: Optional[float] = None

    @computed_field  # type: ignore[misc]
    @property
    def current_holdings_value(self) -> float:
        if self.current_holdings is None:
            return 0.0
        return self.current_holdings * self.current_price

    def update_holdings(self, amount: float) -> "Coin":
        return self.model_copy(update={"current_holdings": amount})


class PortfolioEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    coin_id: str
    amount: float = Field(0.0, ge=0)


class MarketSnapshot(BaseModel):
    """Global market figures, already formatted for display."""

    model_config = ConfigDict(frozen=True)

    market_cap: str
    volume: str
    btc_dominance: str
    market_cap_change_percentage_24h: Optional[float] = None


class Statistic(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    display_value: str
    percentage_change: Optional[float] = None
