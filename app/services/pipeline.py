# app/services/pipeline.py
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, List, Optional, Tuple

from app.schemas.coin import Coin, MarketSnapshot, PortfolioEntry, SortOption, Statistic
from app.schemas.dashboard import DashboardState
from app.services.coin_filter import filter_coins
from app.services.coin_sorter import sort_coins, sort_portfolio_coins
from app.services.holdings import map_holdings
from app.services.statistics import compute_statistics
from app.services.streams import Debouncer, LatestValue, Subscription

logger = logging.getLogger("crypto_dashboard.pipeline")

DEFAULT_SEARCH_DEBOUNCE_SECONDS = 0.5


class AggregationPipeline:
    """
    Combines the coin list, search text, sort option, portfolio entries and
    global market snapshot into the dashboard's three view collections.

    Recomputation order for one emission:
      1. search text / raw coins / sort option -> all_coins
      2. all_coins / portfolio entries         -> portfolio_coins
      3. market snapshot / portfolio_coins     -> statistics (clears is_loading)

    Every cell propagates synchronously. Emissions that arrive while a
    cascade is running are queued and handled after it completes, so two
    cascades never interleave. Search text changes are debounced.

    Collaborators are duck-typed:
      coin_source.coins                 LatestValue[list[Coin]], request_refresh()
      market_source.market_data         LatestValue[MarketSnapshot | None], request_refresh()
      portfolio_store.entries           LatestValue[list[PortfolioEntry]], async update_entry(coin_id, amount)
      feedback.notify(kind)             fire-and-forget
    """

    def __init__(
        self,
        coin_source: Any,
        market_source: Any,
        portfolio_store: Any,
        feedback: Any = None,
        *,
        search_debounce_seconds: float = DEFAULT_SEARCH_DEBOUNCE_SECONDS,
        sort_option: SortOption = SortOption.HOLDINGS,
        search_text: str = "",
    ) -> None:
        self._coin_source = coin_source
        self._market_source = market_source
        self._portfolio_store = portfolio_store
        self._feedback = feedback

        # inputs
        self.search_text: LatestValue[str] = LatestValue("search_text", search_text)
        self.sort_option: LatestValue[SortOption] = LatestValue("sort_option", SortOption(sort_option))
        self._debounced_search: LatestValue[str] = LatestValue("debounced_search_text", search_text)
        self._raw_coins: LatestValue[List[Coin]] = LatestValue("raw_coins")
        self._entries: LatestValue[List[PortfolioEntry]] = LatestValue("portfolio_entries")
        self._market: LatestValue[Optional[MarketSnapshot]] = LatestValue("market_snapshot")

        # outputs
        self.all_coins: LatestValue[List[Coin]] = LatestValue("all_coins")
        self.portfolio_coins: LatestValue[List[Coin]] = LatestValue("portfolio_coins")
        self.statistics: LatestValue[List[Statistic]] = LatestValue("statistics")
        self.is_loading: LatestValue[bool] = LatestValue("is_loading", False)

        self._queue: Deque[Tuple[Callable[..., None], Tuple[Any, ...]]] = deque()
        self._dispatching = False
        self._closed = False

        self._debouncer: Debouncer[str] = Debouncer(
            search_debounce_seconds,
            lambda text: self._dispatch(self._debounced_search.send, text),
        )

        # internal graph first, so each stage sees its upstream before outside observers do
        self._subscriptions: List[Subscription] = [
            self.search_text.subscribe(self._debouncer.push),
            self._debounced_search.subscribe(lambda _: self._recompute_all_coins()),
            self._raw_coins.subscribe(lambda _: self._recompute_all_coins()),
            self.sort_option.subscribe(lambda _: self._recompute_all_coins()),
            self.all_coins.subscribe(lambda _: self._recompute_portfolio_coins()),
            self._entries.subscribe(lambda _: self._recompute_portfolio_coins()),
            self._market.subscribe(lambda _: self._recompute_statistics()),
            self.portfolio_coins.subscribe(lambda _: self._recompute_statistics()),
        ]

        self._connect(coin_source.coins, self._raw_coins, list)
        self._connect(portfolio_store.entries, self._entries, list)
        self._connect(market_source.market_data, self._market, None)

    # ----------------------------
    # wiring
    # ----------------------------
    def _connect(self, upstream: LatestValue, target: LatestValue, convert: Optional[Callable]) -> None:
        def _forward(value: Any) -> None:
            self._dispatch(target.send, convert(value) if convert is not None else value)

        self._subscriptions.append(upstream.subscribe(_forward))
        if upstream.has_value:
            _forward(upstream.value)

    def _dispatch(self, fn: Callable[..., None], *args: Any) -> None:
        if self._closed:
            return

        self._queue.append((fn, args))
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                queued_fn, queued_args = self._queue.popleft()
                queued_fn(*queued_args)
        finally:
            self._dispatching = False
            self._queue.clear()

    # ----------------------------
    # recomputation
    # ----------------------------
    def _recompute_all_coins(self) -> None:
        if not self._raw_coins.has_value:
            return

        coins = sort_coins(
            self.sort_option.value,
            filter_coins(self._debounced_search.value, self._raw_coins.value),
        )
        logger.debug("all_coins recomputed | count=%d", len(coins))
        self.all_coins.send(coins)

    def _recompute_portfolio_coins(self) -> None:
        if not (self.all_coins.has_value and self._entries.has_value):
            return

        coins = sort_portfolio_coins(
            self.sort_option.value,
            map_holdings(self.all_coins.value, self._entries.value),
        )
        logger.debug("portfolio_coins recomputed | count=%d", len(coins))
        self.portfolio_coins.send(coins)

    def _recompute_statistics(self) -> None:
        if not self.portfolio_coins.has_value:
            return

        stats = compute_statistics(self._market.get(), self.portfolio_coins.value)
        logger.debug("statistics recomputed | count=%d", len(stats))
        self.statistics.send(stats)
        self.is_loading.send(False)

    # ----------------------------
    # public API
    # ----------------------------
    @property
    def closed(self) -> bool:
        return self._closed

    def set_search_text(self, text: str) -> None:
        if self._debouncer.delay > 0:
            # raises RuntimeError outside a running loop, before any input changes
            asyncio.get_running_loop()
        self._dispatch(self.search_text.send, text)

    def flush_search(self) -> None:
        """Apply a debounced search text immediately."""
        self._debouncer.flush()

    def set_sort_option(self, option: SortOption) -> None:
        self._dispatch(self.sort_option.send, SortOption(option))

    def reload(self) -> None:
        """Ask the network sources for fresh data; results arrive as new emissions."""
        if self._closed:
            return

        self._dispatch(self.is_loading.send, True)
        self._coin_source.request_refresh()
        self._market_source.request_refresh()
        if self._feedback is not None:
            self._feedback.notify("success")
        logger.info("reload requested")

    async def set_holding(self, coin_id: str, amount: float) -> None:
        """Forward to the portfolio store; the change lands with its next emission."""
        await self._portfolio_store.update_entry(coin_id, amount)

    def state(self) -> DashboardState:
        return DashboardState(
            search_text=self.search_text.value,
            sort_option=self.sort_option.value,
            is_loading=self.is_loading.value,
            all_coins=self.all_coins.get([]) or [],
            portfolio_coins=self.portfolio_coins.get([]) or [],
            statistics=self.statistics.get([]) or [],
        )

    def close(self) -> None:
        if self._closed:
            return

        self._closed = True
        self._debouncer.cancel()
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        logger.info("pipeline closed")
