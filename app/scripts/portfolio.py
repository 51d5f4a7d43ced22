from __future__ import annotations

import argparse
import asyncio
import json
from typing import Optional, Sequence

from app.db import models  # noqa: F401  registers tables on Base
from app.db.session import Base, engine
from app.services.sources import SqlPortfolioStore


async def run(coin: Optional[str] = None, amount: Optional[float] = None) -> list[dict]:
    """Create tables if needed, optionally upsert one holding, return all entries."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    store = SqlPortfolioStore()
    if coin is not None:
        entries = await store.update_entry(coin, amount or 0.0)
    else:
        entries = await store.load()
    return [e.model_dump() for e in entries]


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Inspect or edit stored portfolio holdings")
    parser.add_argument("--coin", default=None, help="CoinGecko coin id, e.g. bitcoin")
    parser.add_argument("--amount", type=float, default=None, help="holding amount; 0 removes the coin")
    args = parser.parse_args(argv)

    if (args.coin is None) != (args.amount is None):
        parser.error("--coin and --amount must be given together")
    if args.amount is not None and args.amount < 0:
        parser.error("--amount must be >= 0")

    try:
        entries = asyncio.run(run(args.coin, args.amount))
        print(json.dumps(entries, indent=2))
    finally:
        asyncio.run(engine.dispose())


if __name__ == "__main__":
    main()
