from __future__ import annotations

from datetime import date, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pandas as pd
import pytest
import requests

from flowscan.adapters.base import AdapterError, DataNotAvailable
from flowscan.adapters.retry import RetryPolicy
from flowscan.adapters.yfinance import YFinanceMarketDataAdapter


@pytest.fixture
def ticker_mock():
    ticker = MagicMock()
    ticker.fast_info = {"last_price": 101.5}
    ticker.info = {
        "currentPrice": 100.0,
        "marketCap": 2.5e12,
        "marketState": "REGULAR",
        "regularMarketChangePercent": 1.25,
        "regularMarketVolume": 5_000_000,
        "shortName": "Apple Inc.",
    }
    ticker.options = ("2024-01-19", "bad-date", "2024-02-16")
    return ticker


def make_adapter(ticker, **kwargs) -> YFinanceMarketDataAdapter:
    kwargs.setdefault("retry_policy", RetryPolicy(max_attempts=2, delay=0, jitter=0))
    kwargs.setdefault("sleep", lambda _: None)
    return YFinanceMarketDataAdapter(ticker_factory=lambda _: ticker, timeout_seconds=0, **kwargs)


def make_option_chain() -> SimpleNamespace:
    calls = pd.DataFrame(
        {
            "contractSymbol": ["AAPL240119C00100000"],
            "strike": [100.0],
            "lastPrice": [1.25],
            "volume": [10],
            "openInterest": [20],
            "impliedVolatility": [0.3],
            "bid": [1.2],
            "ask": [1.3],
        }
    )
    puts = pd.DataFrame(
        {
            "contractSymbol": ["AAPL240119P00100000"],
            "strike": [100.0],
            "lastPrice": [1.10],
            "volume": [12],
            "openInterest": [22],
            "impliedVolatility": [0.31],
            "bid": [1.05],
            "ask": [1.15],
        }
    )
    return SimpleNamespace(calls=calls, puts=puts)


def test_get_chain_retries_and_combines_frames(ticker_mock):
    ticker_mock.option_chain.side_effect = [Exception("rate limit"), make_option_chain()]
    waits = []
    adapter = make_adapter(ticker_mock, sleep=waits.append)

    chain = adapter.get_chain("AAPL", date(2024, 1, 19))

    assert ticker_mock.option_chain.call_count == 2
    assert len(waits) == 1
    assert chain.underlying_price == pytest.approx(101.5)
    assert chain.price_source == "fast_info.last_price"

    combined = chain.to_dataframe()
    assert set(combined["type"]) == {"call", "put"}
    assert combined["symbol"].unique().tolist() == ["AAPL"]
    assert combined["expiration"].unique().tolist() == ["2024-01-19"]
    assert combined["stockPrice"].notna().all()


def test_get_chain_raises_after_retries(ticker_mock):
    ticker_mock.option_chain.side_effect = Exception("down")
    adapter = make_adapter(ticker_mock)

    with pytest.raises(AdapterError):
        adapter.get_chain("AAPL", date(2024, 1, 19))

    assert ticker_mock.option_chain.call_count == 2


def test_get_expirations_skips_unparseable_dates(ticker_mock):
    expirations = make_adapter(ticker_mock).get_expirations("AAPL")

    assert expirations == [date(2024, 1, 19), date(2024, 2, 16)]


def test_get_quote_prefers_fast_info(ticker_mock):
    quote = make_adapter(ticker_mock).get_quote("AAPL")

    assert quote.price == pytest.approx(101.5)
    assert quote.market_cap == pytest.approx(2.5e12)
    assert quote.market_state == "REGULAR"
    assert quote.change_percent == pytest.approx(1.25)
    assert quote.name == "Apple Inc."


def test_get_quote_falls_back_to_previous_close(ticker_mock):
    ticker_mock.fast_info = {}
    ticker_mock.info = {"previousClose": 95.0}

    quote = make_adapter(ticker_mock).get_quote("AAPL")

    assert quote.price == pytest.approx(95.0)
    assert quote.source == "info.previousClose_STALE"


def test_get_quote_without_price_raises(ticker_mock):
    ticker_mock.fast_info = {}
    ticker_mock.info = {}

    with pytest.raises(DataNotAvailable):
        make_adapter(ticker_mock).get_quote("AAPL")


def test_get_fundamentals_scales_ratios_to_percent(ticker_mock):
    ticker_mock.info = {
        "currentPrice": 50.0,
        "sector": "Technology",
        "forwardPE": 18.0,
        "priceToBook": 2.5,
        "returnOnEquity": 0.21,
        "profitMargins": 0.12,
        "debtToEquity": 45.0,
        "revenueGrowth": 0.08,
    }

    fundamentals = make_adapter(ticker_mock).get_fundamentals("MSFT")

    assert fundamentals.pe == pytest.approx(18.0)
    assert fundamentals.pb == pytest.approx(2.5)
    assert fundamentals.roe == pytest.approx(21.0)
    assert fundamentals.profit_margin == pytest.approx(12.0)
    assert fundamentals.revenue_growth == pytest.approx(8.0)
    assert fundamentals.sector == "Technology"


def test_get_earnings_date_returns_next_upcoming(ticker_mock):
    today = date.today()
    ticker_mock.calendar = {"Earnings Date": [today - timedelta(days=30), today + timedelta(days=12)]}

    assert make_adapter(ticker_mock).get_earnings_date("AAPL") == today + timedelta(days=12)


def test_get_movers_parses_screener_payload(ticker_mock):
    response = MagicMock()
    response.json.return_value = {
        "finance": {
            "result": [
                {
                    "quotes": [
                        {
                            "symbol": "NVDA",
                            "shortName": "NVIDIA",
                            "regularMarketPrice": 120.0,
                            "regularMarketChangePercent": 4.2,
                            "regularMarketVolume": 9e7,
                        },
                        {"symbol": "BROKEN"},
                    ]
                }
            ]
        }
    }
    session = MagicMock()
    session.get.return_value = response

    movers = make_adapter(ticker_mock, session=session).get_movers("gainers", 5)

    assert [mover.symbol for mover in movers] == ["NVDA"]
    assert movers[0].change_percent == pytest.approx(4.2)
    assert session.get.call_args.kwargs["params"] == {"scrIds": "day_gainers", "count": 5}


def test_get_movers_returns_empty_on_http_error(ticker_mock):
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("offline")

    assert make_adapter(ticker_mock, session=session).get_movers("active", 5) == []
