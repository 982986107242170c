"""Core abstractions for market data adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence

import pandas as pd


class AdapterError(Exception):
    """Base exception raised for adapter related failures."""


class TransientAdapterError(AdapterError):
    """Raised for failures that are expected to clear up on retry."""


class RateLimitError(TransientAdapterError):
    """Raised when a provider reports rate limiting errors."""


class DataNotAvailable(AdapterError):
    """Raised when requested data is not available from a provider."""


@dataclass
class OptionsChain:
    """Normalized representation of an options chain for one expiration."""

    symbol: str
    expiration: date
    calls: pd.DataFrame
    puts: pd.DataFrame
    underlying_price: Optional[float] = None
    price_source: Optional[str] = None

    def to_dataframe(self) -> pd.DataFrame:
        """Combine call and put frames into one frame tagged with type and expiry."""

        frames: List[pd.DataFrame] = []
        for option_type, frame in (("call", self.calls), ("put", self.puts)):
            if frame is None or frame.empty:
                continue

            enriched = frame.copy()
            enriched["type"] = option_type
            enriched["symbol"] = self.symbol
            enriched["expiration"] = self.expiration.isoformat()

            if self.underlying_price is not None:
                if "stockPrice" not in enriched.columns:
                    enriched["stockPrice"] = self.underlying_price
                else:
                    enriched["stockPrice"] = enriched["stockPrice"].fillna(self.underlying_price)
            elif "stockPrice" not in enriched.columns:
                enriched["stockPrice"] = pd.NA

            frames.append(enriched)

        if not frames:
            return pd.DataFrame()

        return pd.concat(frames, ignore_index=True)


@dataclass(frozen=True)
class Quote:
    """Latest quote for an underlying."""

    symbol: str
    price: float
    market_cap: Optional[float] = None
    market_state: Optional[str] = None
    change_percent: Optional[float] = None
    volume: Optional[float] = None
    name: Optional[str] = None
    timestamp: Optional[datetime] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class Fundamentals:
    """Valuation and quality metrics. Percent fields are already scaled to 0-100."""

    symbol: str
    price: Optional[float] = None
    name: Optional[str] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    pe: Optional[float] = None
    pb: Optional[float] = None
    roe: Optional[float] = None
    profit_margin: Optional[float] = None
    debt_to_equity: Optional[float] = None
    revenue_growth: Optional[float] = None


@dataclass(frozen=True)
class MarketMover:
    symbol: str
    price: float
    change_percent: float
    volume: float = 0.0
    name: Optional[str] = None


class MarketDataAdapter(ABC):
    """Abstract base class for fetching market data from external providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human readable provider name."""

    @abstractmethod
    def get_chain(self, symbol: str, expiration: date) -> OptionsChain:
        """Return the options chain for a symbol and expiration date."""

    @abstractmethod
    def get_quote(self, symbol: str) -> Quote:
        """Return the latest quote for a symbol."""

    def get_quotes(self, symbols: Sequence[str]) -> List[Quote]:
        """Return quotes for several symbols, skipping any that are unavailable."""

        quotes: List[Quote] = []
        for symbol in symbols:
            try:
                quotes.append(self.get_quote(symbol))
            except DataNotAvailable:
                continue
        return quotes

    def get_expirations(self, symbol: str) -> Sequence[date]:
        """Return available expirations for a symbol."""

        raise NotImplementedError

    def get_price_history(self, symbol: str, days: int) -> pd.DataFrame:
        """Return daily OHLCV bars (Open/High/Low/Close/Volume) covering ``days`` calendar days."""

        raise NotImplementedError

    def get_fundamentals(self, symbol: str) -> Fundamentals:
        raise NotImplementedError

    def get_earnings_date(self, symbol: str) -> Optional[date]:
        """Return the next earnings date when the provider knows it."""

        return None

    def get_movers(self, kind: str, limit: int) -> List[MarketMover]:
        """Return market movers for ``kind`` in {"active", "gainers", "losers"}."""

        raise NotImplementedError


__all__ = [
    "AdapterError",
    "DataNotAvailable",
    "Fundamentals",
    "MarketDataAdapter",
    "MarketMover",
    "OptionsChain",
    "Quote",
    "RateLimitError",
    "TransientAdapterError",
]
