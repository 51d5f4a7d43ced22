from __future__ import annotations

from typing import Sequence

from app.schemas.coin import Coin, SortOption

# sorted() is stable, including with reverse=True, so equal keys keep input order.


def sort_coins(option: SortOption, coins: Sequence[Coin]) -> list[Coin]:
    if option is SortOption.RANK_REVERSED:
        return sorted(coins, key=lambda c: c.rank, reverse=True)
    if option is SortOption.PRICE:
        return sorted(coins, key=lambda c: c.current_price, reverse=True)
    if option is SortOption.PRICE_REVERSED:
        return sorted(coins, key=lambda c: c.current_price)
    # rank, holdings, holdings_reversed
    return sorted(coins, key=lambda c: c.rank)


def sort_portfolio_coins(option: SortOption, coins: Sequence[Coin]) -> list[Coin]:
    """Only the holdings orderings touch the portfolio list."""
    if option is SortOption.HOLDINGS:
        return sorted(coins, key=lambda c: c.current_holdings_value, reverse=True)
    if option is SortOption.HOLDINGS_REVERSED:
        return sorted(coins, key=lambda c: c.current_holdings_value)
    return list(coins)
