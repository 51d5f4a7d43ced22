from __future__ import annotations

from typing import Sequence

from app.schemas.coin import Coin


def filter_coins(search_text: str, coins: Sequence[Coin]) -> list[Coin]:
    """Case-insensitive substring match on name, symbol or id."""
    needle = search_text.strip().lower()
    if not needle:
        return list(coins)

    return [
        coin
        for coin in coins
        if needle in coin.name.lower() or needle in coin.symbol.lower() or needle in coin.id.lower()
    ]
