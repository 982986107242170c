from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest

from flowscan.adapters.base import AdapterError, DataNotAvailable
from flowscan.adapters.polygon import PolygonMarketDataAdapter
from flowscan.adapters.retry import RetryPolicy


def make_response(status: int = 200, payload=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload or {}
    return response


def make_adapter(session) -> PolygonMarketDataAdapter:
    return PolygonMarketDataAdapter(
        api_key="test-key",
        session=session,
        retry_policy=RetryPolicy(max_attempts=3, delay=0, jitter=0),
        sleep=lambda _: None,
    )


def test_missing_api_key_raises(monkeypatch):
    monkeypatch.delenv("POLYGON_API_KEY", raising=False)
    with pytest.raises(AdapterError):
        PolygonMarketDataAdapter(session=MagicMock())


def test_get_chain_splits_calls_and_puts_across_pages():
    first_page = {
        "results": [
            {
                "details": {"ticker": "O:AAPL240119C00100000", "strike_price": 100, "contract_type": "call"},
                "last_trade": {"price": 1.3, "sip_timestamp": 1705593600000000000},
                "last_quote": {"bid": 1.2, "ask": 1.4},
                "day": {"volume": 1500},
                "open_interest": 900,
                "implied_volatility": 0.32,
                "underlying_asset": {"price": 99.5},
            }
        ],
        "next_url": "https://api.polygon.io/v3/snapshot/options/AAPL?cursor=abc",
    }
    second_page = {
        "results": [
            {
                "details": {"ticker": "O:AAPL240119P00095000", "strike_price": 95, "contract_type": "put"},
                "last_quote": {"bid": 0.8, "ask": 0.9},
                "day": {"volume": 700},
            }
        ]
    }
    session = MagicMock()
    session.get.side_effect = [make_response(payload=first_page), make_response(payload=second_page)]

    chain = make_adapter(session).get_chain("AAPL", date(2024, 1, 19))

    assert chain.underlying_price == pytest.approx(99.5)
    assert chain.calls["strike"].tolist() == [100]
    assert chain.puts["strike"].tolist() == [95]
    assert chain.calls["lastTradeDate"].iloc[0].year == 2024
    assert session.get.call_count == 2
    assert session.get.call_args_list[0].kwargs["params"]["apiKey"] == "test-key"


def test_rate_limit_is_retried_then_succeeds():
    payload = {"ticker": {"lastTrade": {"p": 187.2}, "day": {"c": 186.0, "v": 1e6}, "todaysChangePerc": 0.4}}
    session = MagicMock()
    session.get.side_effect = [make_response(429), make_response(payload=payload)]

    quote = make_adapter(session).get_quote("AAPL")

    assert quote.price == pytest.approx(187.2)
    assert quote.change_percent == pytest.approx(0.4)
    assert session.get.call_count == 2


def test_not_found_is_fatal_and_not_retried():
    session = MagicMock()
    session.get.return_value = make_response(404)

    with pytest.raises(DataNotAvailable):
        make_adapter(session).get_quote("NOPE")

    assert session.get.call_count == 1


def test_server_errors_exhaust_retries():
    session = MagicMock()
    session.get.return_value = make_response(503)

    with pytest.raises(AdapterError) as excinfo:
        make_adapter(session).get_quote("AAPL")

    assert session.get.call_count == 3
    assert "fetch quote for AAPL" in str(excinfo.value)


def test_price_history_renames_aggregate_columns():
    payload = {
        "results": [
            {"t": 1704067200000, "o": 10, "h": 11, "l": 9, "c": 10.5, "v": 1000},
            {"t": 1704153600000, "o": 10.5, "h": 12, "l": 10, "c": 11.5, "v": 1500},
        ]
    }
    session = MagicMock()
    session.get.return_value = make_response(payload=payload)

    history = make_adapter(session).get_price_history("AAPL", 5)

    assert list(history.columns) == ["Open", "High", "Low", "Close", "Volume"]
    assert history["Close"].tolist() == [10.5, 11.5]
