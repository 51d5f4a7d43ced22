from __future__ import annotations

from typing import Optional, Sequence

from app.schemas.coin import Coin, MarketSnapshot, Statistic
from app.utils.formatting import as_currency_with_2_decimals

MARKET_CAP_TITLE = "Market Cap"
VOLUME_TITLE = "24h Volume"
BTC_DOMINANCE_TITLE = "BTC Dominance"
PORTFOLIO_VALUE_TITLE = "Portfolio Value"


def _previous_value(coin: Coin) -> float:
    """Holdings value 24h ago, backed out of the 24h price change."""
    current = coin.current_holdings_value
    pct = coin.price_change_percentage_24h or 0.0
    factor = 1.0 + pct / 100.0
    if factor <= 0:
        # a -100% move has no finite previous value
        return current
    return current / factor


def portfolio_value(portfolio_coins: Sequence[Coin]) -> float:
    return sum(coin.current_holdings_value for coin in portfolio_coins)


def portfolio_percentage_change(portfolio_coins: Sequence[Coin]) -> float:
    """
    Weighted 24h change of the whole portfolio, in percent.

    An empty portfolio (or one whose previous total is zero) reports 0.0.
    """
    current_total = portfolio_value(portfolio_coins)
    previous_total = sum(_previous_value(coin) for coin in portfolio_coins)
    if previous_total == 0:
        return 0.0
    return (current_total - previous_total) / previous_total * 100.0


def compute_statistics(snapshot: Optional[MarketSnapshot], portfolio_coins: Sequence[Coin]) -> list[Statistic]:
    if snapshot is None:
        return []

    return [
        Statistic(
            title=MARKET_CAP_TITLE,
            display_value=snapshot.market_cap,
            percentage_change=snapshot.market_cap_change_percentage_24h,
        ),
        Statistic(title=VOLUME_TITLE, display_value=snapshot.volume),
        Statistic(title=BTC_DOMINANCE_TITLE, display_value=snapshot.btc_dominance),
        Statistic(
            title=PORTFOLIO_VALUE_TITLE,
            display_value=as_currency_with_2_decimals(portfolio_value(portfolio_coins)),
            percentage_change=portfolio_percentage_change(portfolio_coins),
        ),
    ]
