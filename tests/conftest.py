from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Tuple

import pandas as pd
import pytest

from flowscan.adapters.base import (
    DataNotAvailable,
    Fundamentals,
    MarketDataAdapter,
    MarketMover,
    OptionsChain,
    Quote,
)
from flowscan.models.signal import OptionSignal, OptionType, TenorBucket, TradeDirection, TraderType

NOW = datetime(2024, 1, 10, 15, 0, tzinfo=timezone.utc)


def build_signal(**overrides) -> OptionSignal:
    values = {
        "symbol": "XYZ",
        "option_type": OptionType.CALL,
        "strike": 105.0,
        "expiration": date(2024, 1, 19),
        "last_trade": NOW - timedelta(minutes=5),
        "age_minutes": 5.0,
        "volume": 1000.0,
        "open_interest": 500.0,
        "last": 2.35,
        "bid": 2.0,
        "ask": 2.4,
        "mid": 2.2,
        "spread_pct": 0.18,
        "notional": 220_000.0,
        "implied_volatility": 0.3,
        "pos": 0.875,
        "direction": TradeDirection.BUY,
        "direction_confidence": 0.6,
        "trader_type": TraderType.MIXED,
        "underlying_price": 100.0,
        "moneyness": 1.05,
        "days_to_expiry": 9,
        "market_cap": 5e10,
        "notional_to_market_cap": 220_000.0 / 5e10,
        "tenor_bucket": TenorBucket.SHORT,
    }
    values.update(overrides)
    return OptionSignal(**values)


class FakeAdapter(MarketDataAdapter):
    """In-memory provider; unknown symbols raise ``DataNotAvailable``."""

    name = "fake"

    def __init__(self) -> None:
        self.quotes: Dict[str, Quote] = {}
        self.chains: Dict[Tuple[str, date], OptionsChain] = {}
        self.expirations: Dict[str, List[date]] = {}
        self.history: Dict[str, pd.DataFrame] = {}
        self.fundamentals: Dict[str, Fundamentals] = {}
        self.earnings: Dict[str, date] = {}
        self.movers: Dict[str, List[MarketMover]] = {}
        self.calls: List[Tuple[str, str]] = []

    def get_quote(self, symbol: str) -> Quote:
        self.calls.append(("quote", symbol))
        try:
            return self.quotes[symbol]
        except KeyError:
            raise DataNotAvailable(f"No quote for {symbol}")

    def get_chain(self, symbol: str, expiration: date) -> OptionsChain:
        self.calls.append(("chain", symbol))
        try:
            return self.chains[(symbol, expiration)]
        except KeyError:
            raise DataNotAvailable(f"No chain for {symbol} {expiration}")

    def get_expirations(self, symbol: str) -> List[date]:
        return list(self.expirations.get(symbol, []))

    def get_price_history(self, symbol: str, days: int) -> pd.DataFrame:
        return self.history.get(symbol, pd.DataFrame())

    def get_fundamentals(self, symbol: str) -> Fundamentals:
        self.calls.append(("fundamentals", symbol))
        try:
            return self.fundamentals[symbol]
        except KeyError:
            raise DataNotAvailable(f"No fundamentals for {symbol}")

    def get_earnings_date(self, symbol: str):
        return self.earnings.get(symbol)

    def get_movers(self, kind: str, limit: int) -> List[MarketMover]:
        self.calls.append(("movers", kind))
        return list(self.movers.get(kind, []))[:limit]


def rising_history(days: int = 12, start: float = 100.0) -> pd.DataFrame:
    closes = [start + step for step in range(days)]
    return pd.DataFrame(
        {
            "Open": closes,
            "High": [close + 1 for close in closes],
            "Low": [close - 1 for close in closes],
            "Close": closes,
            "Volume": [1_000_000] * days,
        },
        index=pd.date_range("2024-01-01", periods=days, freq="D"),
    )


@pytest.fixture
def make_signal():
    return build_signal


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def history_frame():
    return rising_history
