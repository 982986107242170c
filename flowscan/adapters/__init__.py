"""Adapter implementations for external market data providers."""

from __future__ import annotations

import os
from importlib import import_module
from typing import Any, Dict, Type

from .base import (
    AdapterError,
    DataNotAvailable,
    Fundamentals,
    MarketDataAdapter,
    MarketMover,
    OptionsChain,
    Quote,
    RateLimitError,
    TransientAdapterError,
)
from .retry import RetryPolicy

_ADAPTER_REGISTRY: Dict[str, str] = {
    "yfinance": "flowscan.adapters.yfinance:YFinanceMarketDataAdapter",
    "polygon": "flowscan.adapters.polygon:PolygonMarketDataAdapter",
}


def _load(provider: str) -> Type[MarketDataAdapter]:
    try:
        dotted_path = _ADAPTER_REGISTRY[provider]
    except KeyError as exc:
        raise KeyError(f"Unknown market data provider: {provider}") from exc

    module_name, class_name = dotted_path.split(":", 1)
    module = import_module(module_name)
    return getattr(module, class_name)


def create_adapter(provider: str, **options: Any) -> MarketDataAdapter:
    """Instantiate a market data adapter by name.

    Args:
        provider: ``yfinance``, ``polygon`` or ``auto``. ``auto`` uses Polygon
            with a Yahoo fallback when ``POLYGON_API_KEY`` is set, otherwise Yahoo.
        **options: Keyword arguments forwarded to the adapter constructor(s).

    Raises:
        KeyError: If the provider name is unknown.
    """

    normalized = provider.strip().lower()
    if normalized == "auto":
        yahoo = _load("yfinance")(**options)
        if not os.getenv("POLYGON_API_KEY"):
            return yahoo
        from .fallback import FallbackMarketDataAdapter

        return FallbackMarketDataAdapter(_load("polygon")(**options), yahoo)

    return _load(normalized)(**options)


__all__ = [
    "AdapterError",
    "DataNotAvailable",
    "Fundamentals",
    "MarketDataAdapter",
    "MarketMover",
    "OptionsChain",
    "Quote",
    "RateLimitError",
    "RetryPolicy",
    "TransientAdapterError",
    "create_adapter",
]
