# app/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


def parse_float(value: str | None, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    return float(value)


@dataclass(frozen=True)
class Settings:
    DATABASE_URL: str
    COINGECKO_BASE_URL: str
    COINGECKO_TIMEOUT_SECONDS: float
    COINS_PER_PAGE: int
    VS_CURRENCY: str
    SEARCH_DEBOUNCE_SECONDS: float
    DEFAULT_SORT_OPTION: str
    REFRESH_ENABLED: bool
    REFRESH_INTERVAL_SECONDS: int
    LOG_LEVEL: str

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            DATABASE_URL=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./portfolio.db"),
            COINGECKO_BASE_URL=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3").rstrip("/"),
            COINGECKO_TIMEOUT_SECONDS=parse_float(os.getenv("COINGECKO_TIMEOUT_SECONDS"), 10.0),
            COINS_PER_PAGE=parse_int(os.getenv("COINS_PER_PAGE"), 250),
            VS_CURRENCY=os.getenv("VS_CURRENCY", "usd").strip().lower(),
            SEARCH_DEBOUNCE_SECONDS=parse_float(os.getenv("SEARCH_DEBOUNCE_SECONDS"), 0.5),
            DEFAULT_SORT_OPTION=os.getenv("DEFAULT_SORT_OPTION", "holdings").strip().lower(),
            REFRESH_ENABLED=parse_bool(os.getenv("REFRESH_ENABLED"), True),
            REFRESH_INTERVAL_SECONDS=max(30, parse_int(os.getenv("REFRESH_INTERVAL_SECONDS"), 300)),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
