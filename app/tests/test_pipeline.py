from __future__ import annotations

import asyncio

import pytest

from app.schemas.coin import SortOption
from app.services.pipeline import AggregationPipeline
from conftest import (
    SNAPSHOT,
    FakeCoinSource,
    FakeFeedback,
    FakeMarketSource,
    FakePortfolioStore,
    make_coin,
)


def _pipeline(coins=None, amounts=None, snapshot=None, sort=SortOption.HOLDINGS, debounce=0.0):
    coin_source = FakeCoinSource(coins)
    market_source = FakeMarketSource(snapshot)
    store = FakePortfolioStore(amounts)
    feedback = FakeFeedback()
    pipeline = AggregationPipeline(
        coin_source,
        market_source,
        store,
        feedback,
        search_debounce_seconds=debounce,
        sort_option=sort,
    )
    return pipeline, coin_source, market_source, store, feedback


def _ids(coins):
    return [c.id for c in coins]


def test_initial_empty_state():
    pipeline, *_ = _pipeline(amounts={})
    state = pipeline.state()

    assert state.all_coins == []
    assert state.portfolio_coins == []
    assert state.statistics == []
    assert state.is_loading is False
    assert state.sort_option is SortOption.HOLDINGS


def test_portfolio_waits_for_first_entries_emission(coins):
    pipeline, _, _, store, _ = _pipeline(coins, amounts=None, snapshot=SNAPSHOT)

    assert _ids(pipeline.all_coins.value) == ["bitcoin", "ethereum", "solana", "dogecoin"]
    assert pipeline.portfolio_coins.has_value is False
    assert pipeline.statistics.has_value is False

    store.entries.send([])
    assert pipeline.portfolio_coins.value == []
    assert pipeline.statistics.value[-1].display_value == "$0.00"
    assert pipeline.statistics.value[-1].percentage_change == 0.0


def test_btc_example_end_to_end():
    btc = make_coin("btc", rank=1, price=50000.0, pct=10.0)
    pipeline, *_ = _pipeline([btc], amounts={"btc": 2}, snapshot=SNAPSHOT)

    [held] = pipeline.portfolio_coins.value
    assert held.current_holdings == 2
    assert held.current_holdings_value == pytest.approx(100000.0)

    portfolio_stat = pipeline.statistics.value[-1]
    assert portfolio_stat.title == "Portfolio Value"
    assert portfolio_stat.display_value == "$100,000.00"
    assert portfolio_stat.percentage_change == pytest.approx(10.0)


def test_missing_market_snapshot_yields_empty_statistics(coins):
    pipeline, _, market, _, _ = _pipeline(coins, amounts={"bitcoin": 1})
    assert pipeline.statistics.value == []

    market.market_data.send(SNAPSHOT)
    assert len(pipeline.statistics.value) == 4


def test_cascade_order_for_one_emission(coins):
    pipeline, coin_source, *_ = _pipeline([], amounts={"bitcoin": 1}, snapshot=SNAPSHOT)
    order = []
    pipeline.all_coins.subscribe(lambda _: order.append("all_coins"))
    pipeline.portfolio_coins.subscribe(lambda _: order.append("portfolio_coins"))
    pipeline.statistics.subscribe(lambda _: order.append("statistics"))

    coin_source.coins.send(coins)

    # internal stages run before outside observers of the upstream output
    assert order == ["statistics", "portfolio_coins", "all_coins"]
    assert _ids(pipeline.portfolio_coins.value) == ["bitcoin"]


def test_market_emission_only_recomputes_statistics(coins):
    pipeline, _, market, _, _ = _pipeline(coins, amounts={"bitcoin": 1}, snapshot=SNAPSHOT)
    counts = {"all": 0, "portfolio": 0, "stats": 0}
    pipeline.all_coins.subscribe(lambda _: counts.__setitem__("all", counts["all"] + 1))
    pipeline.portfolio_coins.subscribe(lambda _: counts.__setitem__("portfolio", counts["portfolio"] + 1))
    pipeline.statistics.subscribe(lambda _: counts.__setitem__("stats", counts["stats"] + 1))

    market.market_data.send(SNAPSHOT)

    assert counts == {"all": 0, "portfolio": 0, "stats": 1}


def test_sort_change_reorders_both_lists(coins):
    amounts = {"bitcoin": 0.001, "ethereum": 10, "solana": 1}  # values 50, 30000, 150
    pipeline, *_ = _pipeline(coins, amounts=amounts, snapshot=SNAPSHOT, sort=SortOption.HOLDINGS)

    assert _ids(pipeline.all_coins.value) == ["bitcoin", "ethereum", "solana", "dogecoin"]
    assert _ids(pipeline.portfolio_coins.value) == ["ethereum", "solana", "bitcoin"]

    pipeline.set_sort_option(SortOption.HOLDINGS_REVERSED)
    assert _ids(pipeline.portfolio_coins.value) == ["bitcoin", "solana", "ethereum"]

    pipeline.set_sort_option(SortOption.PRICE_REVERSED)
    assert _ids(pipeline.all_coins.value) == ["dogecoin", "solana", "ethereum", "bitcoin"]
    # portfolio follows all_coins order when no holdings sort is active
    assert _ids(pipeline.portfolio_coins.value) == ["solana", "ethereum", "bitcoin"]


def test_search_filters_coins_and_portfolio(coins):
    pipeline, *_ = _pipeline(coins, amounts={"bitcoin": 1, "ethereum": 1}, snapshot=SNAPSHOT)

    pipeline.set_search_text("BT")

    assert _ids(pipeline.all_coins.value) == ["bitcoin"]
    assert _ids(pipeline.portfolio_coins.value) == ["bitcoin"]
    assert pipeline.statistics.value[-1].display_value == "$50,000.00"


def test_recompute_is_idempotent(coins):
    pipeline, coin_source, *_ = _pipeline(coins, amounts={"bitcoin": 1}, snapshot=SNAPSHOT)
    first = pipeline.state()

    coin_source.coins.send(list(coins))
    second = pipeline.state()

    assert first == second


@pytest.mark.asyncio
async def test_search_text_is_debounced(coins):
    pipeline, *_ = _pipeline(coins, amounts={}, snapshot=SNAPSHOT, debounce=0.05)
    emissions = []
    pipeline.all_coins.subscribe(emissions.append)

    for text in ["e", "et", "eth"]:
        pipeline.set_search_text(text)
        await asyncio.sleep(0.01)

    assert emissions == []
    assert pipeline.search_text.value == "eth"

    await asyncio.sleep(0.15)

    assert len(emissions) == 1
    assert _ids(emissions[0]) == ["ethereum"]
    pipeline.close()


@pytest.mark.asyncio
async def test_flush_search_applies_pending_text(coins):
    pipeline, *_ = _pipeline(coins, amounts={}, debounce=10)

    pipeline.set_search_text("doge")
    assert len(pipeline.all_coins.value) == 4

    pipeline.flush_search()
    assert _ids(pipeline.all_coins.value) == ["dogecoin"]
    pipeline.close()


def test_debounced_search_outside_loop_keeps_previous_text(coins):
    pipeline, *_ = _pipeline(coins, amounts={}, debounce=0.5)

    with pytest.raises(RuntimeError):
        pipeline.set_search_text("eth")

    assert pipeline.search_text.value == ""
    pipeline.flush_search()
    assert len(pipeline.all_coins.value) == 4
    pipeline.close()


def test_reload_sets_loading_and_signals_sources(coins):
    pipeline, coin_source, market, _, feedback = _pipeline(coins, amounts={"bitcoin": 1}, snapshot=SNAPSHOT)
    emissions = []
    pipeline.all_coins.subscribe(emissions.append)

    pipeline.reload()

    assert pipeline.is_loading.value is True
    assert coin_source.refresh_requests == 1
    assert market.refresh_requests == 1
    assert feedback.kinds == ["success"]
    assert emissions == []

    # the loading flag clears when fresh data arrives
    market.market_data.send(SNAPSHOT)
    assert pipeline.is_loading.value is False


def test_set_holding_goes_through_store(coins):
    pipeline, _, _, store, _ = _pipeline(coins, amounts={"bitcoin": 1}, snapshot=SNAPSHOT)

    asyncio.run(pipeline.set_holding("ethereum", 2.5))

    assert store.updates == [("ethereum", 2.5)]
    held = {c.id: c.current_holdings for c in pipeline.portfolio_coins.value}
    assert held == {"bitcoin": 1, "ethereum": 2.5}

    asyncio.run(pipeline.set_holding("bitcoin", 0))
    assert _ids(pipeline.portfolio_coins.value) == ["ethereum"]


def test_reentrant_emission_is_queued_until_cascade_completes(coins):
    pipeline, *_ = _pipeline(coins, amounts={"bitcoin": 1}, snapshot=SNAPSHOT, sort=SortOption.RANK)
    events = []
    switched = []

    def on_portfolio(value):
        events.append(("portfolio", _ids(value)))
        if not switched:
            switched.append(True)
            pipeline.set_sort_option(SortOption.PRICE_REVERSED)
            events.append(("sort requested", pipeline.sort_option.value))

    pipeline.portfolio_coins.subscribe(on_portfolio)
    pipeline.statistics.subscribe(lambda _: events.append(("statistics", None)))

    pipeline.set_search_text("")

    # the sort change waits until the first cascade has finished
    assert events == [
        ("statistics", None),
        ("portfolio", ["bitcoin"]),
        ("sort requested", SortOption.RANK),
        ("statistics", None),
        ("portfolio", ["bitcoin"]),
    ]
    assert pipeline.sort_option.value is SortOption.PRICE_REVERSED
    assert _ids(pipeline.all_coins.value) == ["dogecoin", "solana", "ethereum", "bitcoin"]


def test_close_releases_upstream_subscriptions(coins):
    pipeline, coin_source, market, store, _ = _pipeline(coins, amounts={}, snapshot=SNAPSHOT)
    before = pipeline.state()

    pipeline.close()
    pipeline.close()

    assert pipeline.closed is True
    assert coin_source.coins.subscriber_count() == 0
    assert market.market_data.subscriber_count() == 0
    assert store.entries.subscriber_count() == 0

    coin_source.coins.send([])
    pipeline.set_search_text("btc")
    assert pipeline.state() == before
