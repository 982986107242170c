from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest

from flowscan.adapters import create_adapter
from flowscan.adapters.base import AdapterError, MarketDataAdapter, Quote
from flowscan.adapters.fallback import FallbackMarketDataAdapter
from flowscan.adapters.yfinance import YFinanceMarketDataAdapter


def make_provider(name: str) -> MagicMock:
    provider = MagicMock(spec=MarketDataAdapter)
    provider.name = name
    return provider


def test_primary_result_is_used_when_available():
    primary, secondary = make_provider("polygon"), make_provider("yfinance")
    primary.get_quote.return_value = Quote(symbol="AAPL", price=190.0)

    quote = FallbackMarketDataAdapter(primary, secondary).get_quote("AAPL")

    assert quote.price == 190.0
    secondary.get_quote.assert_not_called()


def test_secondary_used_when_primary_fails():
    primary, secondary = make_provider("polygon"), make_provider("yfinance")
    primary.get_fundamentals.side_effect = NotImplementedError
    primary.get_expirations.side_effect = AdapterError("down")
    secondary.get_expirations.return_value = [date(2024, 1, 19)]

    adapter = FallbackMarketDataAdapter(primary, secondary)

    assert adapter.get_expirations("AAPL") == [date(2024, 1, 19)]
    adapter.get_fundamentals("AAPL")
    secondary.get_fundamentals.assert_called_once_with("AAPL")
    assert adapter.name == "polygon+yfinance"


def test_earnings_date_falls_through_when_primary_has_none():
    primary, secondary = make_provider("polygon"), make_provider("yfinance")
    primary.get_earnings_date.return_value = None
    secondary.get_earnings_date.return_value = date(2024, 2, 1)

    assert FallbackMarketDataAdapter(primary, secondary).get_earnings_date("AAPL") == date(2024, 2, 1)


def test_auto_provider_without_key_is_plain_yahoo(monkeypatch):
    monkeypatch.delenv("POLYGON_API_KEY", raising=False)

    assert isinstance(create_adapter("auto"), YFinanceMarketDataAdapter)


def test_auto_provider_with_key_wraps_polygon(monkeypatch):
    monkeypatch.setenv("POLYGON_API_KEY", "secret")

    adapter = create_adapter("auto")

    assert isinstance(adapter, FallbackMarketDataAdapter)
    assert adapter.name == "polygon+yfinance"


def test_unknown_provider_raises_key_error():
    with pytest.raises(KeyError):
        create_adapter("bloomberg")
