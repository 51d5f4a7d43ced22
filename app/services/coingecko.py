"""Helpers for interacting with the public CoinGecko API."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from app.schemas.coin import Coin, MarketSnapshot
from app.utils.formatting import as_percent_string, formatted_with_abbreviations

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoError(RuntimeError):
    """CoinGecko could not be reached or returned an unusable payload."""


async def _get_json(
    path: str,
    params: Optional[dict[str, Any]] = None,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    try:
        async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as exc:
        raise CoinGeckoError(f"Unable to reach CoinGecko ({path})") from exc
    except ValueError as exc:
        raise CoinGeckoError(f"CoinGecko returned invalid JSON ({path})") from exc


async def fetch_raw_market_data(
    vs_currency: str = "usd",
    order: str = "market_cap_desc",
    per_page: int = 250,
    page: int = 1,
    sparkline: bool = True,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[dict[str, Any]]:
    """Return the raw CoinGecko /coins/markets payload."""

    params = {
        "vs_currency": vs_currency,
        "order": order,
        "per_page": per_page,
        "page": page,
        "sparkline": str(sparkline).lower(),
        "price_change_percentage": "24h",
    }
    data = await _get_json("/coins/markets", params, base_url=base_url, timeout=timeout, transport=transport)
    if not isinstance(data, list):
        raise CoinGeckoError("Unexpected /coins/markets payload")
    return data


async def fetch_global_data(
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, Any]:
    """Return the ``data`` object of the CoinGecko /global payload."""

    payload = await _get_json("/global", base_url=base_url, timeout=timeout, transport=transport)
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise CoinGeckoError("Unexpected /global payload")
    return payload["data"]


def _opt_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_coin(raw: dict[str, Any]) -> Coin:
    try:
        return Coin(
            id=str(raw["id"]),
            symbol=str(raw.get("symbol") or ""),
            name=str(raw.get("name") or ""),
            image=raw.get("image"),
            current_price=float(raw.get("current_price") or 0.0),
            market_cap=_opt_float(raw.get("market_cap")),
            rank=int(raw.get("market_cap_rank") or 0),
            total_volume=_opt_float(raw.get("total_volume")),
            high_24h=_opt_float(raw.get("high_24h")),
            low_24h=_opt_float(raw.get("low_24h")),
            price_change_24h=_opt_float(raw.get("price_change_24h")),
            price_change_percentage_24h=_opt_float(raw.get("price_change_percentage_24h")),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise CoinGeckoError(f"Malformed coin payload: {raw!r:.120}") from exc


def parse_coins(raw_data: list[dict[str, Any]]) -> list[Coin]:
    return [parse_coin(row) for row in raw_data]


def parse_market_snapshot(data: dict[str, Any], vs_currency: str = "usd") -> MarketSnapshot:
    """
    Build display strings from the /global data object.
    Example: total_market_cap.usd=1.2e12 -> market_cap="$1.20Tr"
    """
    market_cap = _opt_float((data.get("total_market_cap") or {}).get(vs_currency)) or 0.0
    volume = _opt_float((data.get("total_volume") or {}).get(vs_currency)) or 0.0
    btc_dominance = _opt_float((data.get("market_cap_percentage") or {}).get("btc")) or 0.0

    return MarketSnapshot(
        market_cap="$" + formatted_with_abbreviations(market_cap),
        volume="$" + formatted_with_abbreviations(volume),
        btc_dominance=as_percent_string(btc_dominance),
        market_cap_change_percentage_24h=_opt_float(data.get("market_cap_change_percentage_24h_usd")),
    )
