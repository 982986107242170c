"""Configuration helpers for the CLI, batch job and API."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from flowscan.adapters import MarketDataAdapter, create_adapter

from .loader import AppSettings, get_settings, reset_settings_cache

DEFAULT_PROVIDER = "yfinance"


@lru_cache(maxsize=None)
def _get_market_data_adapter(provider: Optional[str], env: Optional[str]) -> MarketDataAdapter:
    settings = get_settings(env)
    name = (provider or os.getenv("MARKET_DATA_PROVIDER") or settings.adapter.provider or DEFAULT_PROVIDER)
    name = name.strip().lower()
    options = dict(settings.adapter.settings)
    options.setdefault("retry_policy", settings.retry.to_policy())
    options.setdefault("timeout_seconds", settings.adapter.timeout_seconds)
    try:
        return create_adapter(name, **options)
    except KeyError as exc:
        raise ValueError(f"Unsupported market data provider: {name}") from exc


def get_market_data_adapter(provider: Optional[str] = None, env: Optional[str] = None) -> MarketDataAdapter:
    """Return a market data adapter instance based on configuration."""

    return _get_market_data_adapter(provider, env)


def reset_market_data_adapter_cache() -> None:
    """Clear the cached adapter instance (useful for tests)."""

    _get_market_data_adapter.cache_clear()


__all__ = [
    "AppSettings",
    "DEFAULT_PROVIDER",
    "get_market_data_adapter",
    "get_settings",
    "reset_market_data_adapter_cache",
    "reset_settings_cache",
]
