"""Adapter that tries a primary provider and falls back to a secondary one."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, List, Optional, Sequence

import pandas as pd

from .base import AdapterError, Fundamentals, MarketDataAdapter, MarketMover, OptionsChain, Quote

logger = logging.getLogger(__name__)


class FallbackMarketDataAdapter(MarketDataAdapter):
    """Delegate to ``primary`` and retry the same call on ``secondary`` when it fails.

    A primary that does not implement an operation (``NotImplementedError``) is
    treated the same as one that failed.
    """

    def __init__(self, primary: MarketDataAdapter, secondary: MarketDataAdapter) -> None:
        self._primary = primary
        self._secondary = secondary

    @property
    def name(self) -> str:
        return f"{self._primary.name}+{self._secondary.name}"

    def _call(self, method: str, *args: Any) -> Any:
        primary_call: Callable[..., Any] = getattr(self._primary, method)
        try:
            return primary_call(*args)
        except (AdapterError, NotImplementedError) as exc:
            logger.warning(
                "%s.%s failed (%s); falling back to %s",
                self._primary.name,
                method,
                exc or type(exc).__name__,
                self._secondary.name,
            )
        return getattr(self._secondary, method)(*args)

    def get_expirations(self, symbol: str) -> Sequence[date]:
        return self._call("get_expirations", symbol)

    def get_chain(self, symbol: str, expiration: date) -> OptionsChain:
        return self._call("get_chain", symbol, expiration)

    def get_quote(self, symbol: str) -> Quote:
        return self._call("get_quote", symbol)

    def get_price_history(self, symbol: str, days: int) -> pd.DataFrame:
        return self._call("get_price_history", symbol, days)

    def get_fundamentals(self, symbol: str) -> Fundamentals:
        return self._call("get_fundamentals", symbol)

    def get_earnings_date(self, symbol: str) -> Optional[date]:
        try:
            result = self._primary.get_earnings_date(symbol)
        except AdapterError as exc:
            logger.warning("%s earnings lookup failed for %s: %s", self._primary.name, symbol, exc)
            result = None
        if result is None:
            return self._secondary.get_earnings_date(symbol)
        return result

    def get_movers(self, kind: str, limit: int) -> List[MarketMover]:
        return self._call("get_movers", kind, limit)


__all__ = ["FallbackMarketDataAdapter"]
