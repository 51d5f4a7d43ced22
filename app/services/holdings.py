from __future__ import annotations

import logging
from typing import Sequence

from app.schemas.coin import Coin, PortfolioEntry

logger = logging.getLogger("crypto_dashboard.holdings")


def map_holdings(coins: Sequence[Coin], entries: Sequence[PortfolioEntry]) -> list[Coin]:
    """
    Join coins with portfolio entries.

    Only coins that have an entry are returned, in the order of ``coins``,
    each carrying the entry's amount. Duplicate entries for one coin keep
    the first.
    """
    amounts: dict[str, float] = {}
    for entry in entries:
        if entry.coin_id in amounts:
            logger.warning("duplicate portfolio entry ignored | coin_id=%s", entry.coin_id)
            continue
        amounts[entry.coin_id] = entry.amount

    return [coin.update_holdings(amounts[coin.id]) for coin in coins if coin.id in amounts]
