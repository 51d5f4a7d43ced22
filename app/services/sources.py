# app/services/sources.py
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime
from typing import Callable, List, Optional, Set

import httpx
from sqlalchemy import delete, select

from app.config.settings import Settings, get_settings
from app.db import session as db_session
from app.db.models import PortfolioEntryRow
from app.schemas.coin import Coin, MarketSnapshot, PortfolioEntry
from app.services.coingecko import (
    CoinGeckoError,
    fetch_global_data,
    fetch_raw_market_data,
    parse_coins,
    parse_market_snapshot,
)
from app.services.streams import LatestValue
from app.utils.time import utcnow

logger = logging.getLogger("crypto_dashboard.sources")


class _RefreshingSource:
    """Owns the fetch tasks started by ``request_refresh``."""

    name = "source"

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings or get_settings()
        self._transport = transport
        self._tasks: Set[asyncio.Task] = set()
        self.last_success_utc: Optional[datetime] = None
        self.last_error: Optional[str] = None

    async def _fetch_and_publish(self) -> None:
        raise NotImplementedError

    async def refresh(self) -> bool:
        """Fetch once and emit on success. Failures are logged; nothing is emitted."""
        try:
            await self._fetch_and_publish()
        except CoinGeckoError as e:
            self.last_error = str(e)
            logger.warning("%s refresh failed | err=%s", self.name, e)
            return False

        self.last_success_utc = utcnow()
        self.last_error = None
        return True

    def request_refresh(self) -> None:
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending_refreshes(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


class CoinGeckoCoinSource(_RefreshingSource):
    name = "coins"

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(settings, transport)
        self.coins: LatestValue[List[Coin]] = LatestValue("coins", [])

    async def _fetch_and_publish(self) -> None:
        s = self._settings
        raw = await fetch_raw_market_data(
            vs_currency=s.VS_CURRENCY,
            per_page=s.COINS_PER_PAGE,
            base_url=s.COINGECKO_BASE_URL,
            timeout=s.COINGECKO_TIMEOUT_SECONDS,
            transport=self._transport,
        )
        coins = parse_coins(raw)
        logger.info("coins fetched | count=%d", len(coins))
        self.coins.send(coins)


class CoinGeckoMarketSource(_RefreshingSource):
    name = "market"

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(settings, transport)
        # no value until the first successful fetch
        self.market_data: LatestValue[Optional[MarketSnapshot]] = LatestValue("market_data")

    async def _fetch_and_publish(self) -> None:
        s = self._settings
        data = await fetch_global_data(
            base_url=s.COINGECKO_BASE_URL,
            timeout=s.COINGECKO_TIMEOUT_SECONDS,
            transport=self._transport,
        )
        snapshot = parse_market_snapshot(data, vs_currency=s.VS_CURRENCY)
        logger.info("market data fetched | market_cap=%s", snapshot.market_cap)
        self.market_data.send(snapshot)


class SqlPortfolioStore:
    """
    Portfolio entries persisted in ``portfolio_entries``.

    Every mutation re-emits the full entry list. An amount of 0 (or less)
    deletes the coin's row.
    """

    def __init__(self, session_factory: Optional[Callable] = None) -> None:
        self._session_factory = session_factory
        self._lock = asyncio.Lock()
        self.entries: LatestValue[List[PortfolioEntry]] = LatestValue("portfolio_entries")

    def _session(self):
        factory = self._session_factory or db_session.session_factory
        return factory()

    async def _read_all(self, session) -> List[PortfolioEntry]:
        result = await session.execute(select(PortfolioEntryRow).order_by(PortfolioEntryRow.created_at, PortfolioEntryRow.coin_id))
        return [PortfolioEntry(coin_id=row.coin_id, amount=row.amount) for row in result.scalars().all()]

    async def load(self) -> List[PortfolioEntry]:
        async with self._lock:
            async with self._session() as session:
                entries = await self._read_all(session)
            logger.info("portfolio loaded | entries=%d", len(entries))
            self.entries.send(entries)
            return entries

    async def update_entry(self, coin_id: str, amount: float) -> List[PortfolioEntry]:
        async with self._lock:
            async with self._session() as session:
                if amount > 0:
                    row = await session.get(PortfolioEntryRow, coin_id)
                    if row is None:
                        session.add(PortfolioEntryRow(coin_id=coin_id, amount=amount))
                    else:
                        row.amount = amount
                else:
                    await session.execute(delete(PortfolioEntryRow).where(PortfolioEntryRow.coin_id == coin_id))
                await session.commit()

                entries = await self._read_all(session)

            logger.info("portfolio updated | coin_id=%s | amount=%s | entries=%d", coin_id, amount, len(entries))
            self.entries.send(entries)
            return entries


class LoggingFeedbackSink:
    """Stand-in for device feedback: records and logs notifications."""

    def __init__(self) -> None:
        self.counts: Counter = Counter()

    def notify(self, kind: str) -> None:
        self.counts[kind] += 1
        logger.info("feedback | kind=%s", kind)
