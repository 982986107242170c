from __future__ import annotations

from datetime import date

from flowscan.adapters.base import AdapterError
from flowscan.options.earnings import days_to_earnings


def test_days_until_upcoming_earnings(fake_adapter):
    fake_adapter.earnings["AAPL"] = date(2024, 1, 15)

    assert days_to_earnings(fake_adapter, "AAPL", today=date(2024, 1, 10)) == 5
    assert days_to_earnings(fake_adapter, "AAPL", today=date(2024, 1, 15)) == 0


def test_past_or_unknown_earnings_are_none(fake_adapter):
    fake_adapter.earnings["AAPL"] = date(2024, 1, 5)

    assert days_to_earnings(fake_adapter, "AAPL", today=date(2024, 1, 10)) is None
    assert days_to_earnings(fake_adapter, "MSFT", today=date(2024, 1, 10)) is None


def test_provider_failure_is_none(fake_adapter):
    def broken(symbol):
        raise AdapterError("calendar down")

    fake_adapter.get_earnings_date = broken

    assert days_to_earnings(fake_adapter, "AAPL") is None
