from __future__ import annotations

from typing import Optional

import pytest

from app.schemas.coin import Coin, MarketSnapshot, PortfolioEntry
from app.services.streams import LatestValue


def make_coin(
    coin_id: str,
    rank: int = 1,
    price: float = 1.0,
    pct: Optional[float] = None,
    name: Optional[str] = None,
    symbol: Optional[str] = None,
) -> Coin:
    return Coin(
        id=coin_id,
        symbol=symbol if symbol is not None else coin_id,
        name=name if name is not None else coin_id.capitalize(),
        current_price=price,
        rank=rank,
        price_change_percentage_24h=pct,
    )


SNAPSHOT = MarketSnapshot(
    market_cap="$1.20Tr",
    volume="$45.60Bn",
    btc_dominance="48.50%",
    market_cap_change_percentage_24h=-1.25,
)


class FakeCoinSource:
    def __init__(self, coins=None) -> None:
        self.coins = LatestValue("coins", list(coins or []))
        self.refresh_requests = 0

    def request_refresh(self) -> None:
        self.refresh_requests += 1


class FakeMarketSource:
    def __init__(self, snapshot: Optional[MarketSnapshot] = None) -> None:
        self.market_data = LatestValue("market_data")
        if snapshot is not None:
            self.market_data.send(snapshot)
        self.refresh_requests = 0

    def request_refresh(self) -> None:
        self.refresh_requests += 1


class FakePortfolioStore:
    def __init__(self, amounts: Optional[dict] = None) -> None:
        self.entries = LatestValue("portfolio_entries")
        self._amounts: dict = {}
        self.updates: list = []
        if amounts is not None:
            self._amounts = dict(amounts)
            self._emit()

    def _emit(self) -> None:
        self.entries.send([PortfolioEntry(coin_id=k, amount=v) for k, v in self._amounts.items()])

    async def update_entry(self, coin_id: str, amount: float) -> None:
        self.updates.append((coin_id, amount))
        if amount > 0:
            self._amounts[coin_id] = amount
        else:
            self._amounts.pop(coin_id, None)
        self._emit()


class FakeFeedback:
    def __init__(self) -> None:
        self.kinds: list = []

    def notify(self, kind: str) -> None:
        self.kinds.append(kind)


@pytest.fixture()
def coins() -> list[Coin]:
    return [
        make_coin("bitcoin", rank=1, price=50000.0, pct=10.0, name="Bitcoin", symbol="btc"),
        make_coin("ethereum", rank=2, price=3000.0, pct=-5.0, name="Ethereum", symbol="eth"),
        make_coin("solana", rank=5, price=150.0, pct=None, name="Solana", symbol="sol"),
        make_coin("dogecoin", rank=9, price=0.1, pct=2.0, name="Dogecoin", symbol="doge"),
    ]
