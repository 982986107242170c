from __future__ import annotations

import asyncio
from datetime import date, timedelta

import pandas as pd
import pytest

from flowscan.adapters.base import OptionsChain, Quote
from flowscan.config.loader import ScanSettings
from flowscan.models.signal import SpotConfirmation
from flowscan.options.scanner import OptionsFlowScanner, fresh_window_minutes, select_expirations

from conftest import NOW, rising_history

EXPIRY = date(2024, 1, 19)
RELAXED = ScanSettings(min_volume=10, min_notional=5000, min_ratio=0.01)


def contract(strike: float, **overrides):
    row = {
        "strike": strike,
        "bid": 2.0,
        "ask": 2.4,
        "lastPrice": 2.35,
        "volume": 2000,
        "openInterest": 500,
        "impliedVolatility": 0.35,
        "lastTradeDate": NOW - timedelta(minutes=5),
    }
    row.update(overrides)
    return row


def seed_symbol(adapter, symbol="XYZ"):
    adapter.quotes[symbol] = Quote(symbol=symbol, price=100.0, market_cap=5e10, market_state="REGULAR")
    adapter.history[symbol] = rising_history(12)
    adapter.expirations[symbol] = [date(2024, 1, 5), EXPIRY, date(2024, 1, 26), date(2024, 3, 15)]
    adapter.chains[(symbol, EXPIRY)] = OptionsChain(
        symbol=symbol,
        expiration=EXPIRY,
        calls=pd.DataFrame([contract(105.0), contract(100.0)]),
        puts=pd.DataFrame([contract(100.0, bid=0.01, ask=0.02, lastPrice=0.02, volume=5)]),
        underlying_price=100.0,
    )


def test_select_expirations_window_and_limit():
    expirations = [date(2024, 2, 16), date(2024, 1, 19), date(2024, 2, 9), date(2024, 1, 5)]

    assert select_expirations(expirations, NOW) == [date(2024, 1, 19), date(2024, 2, 9)]
    assert select_expirations(expirations, NOW, limit=1) == [date(2024, 1, 19)]
    assert select_expirations(expirations, NOW, max_days=5) == []


def test_fresh_window_depends_on_session():
    settings = ScanSettings()

    assert fresh_window_minutes("regular", settings) == 60
    assert fresh_window_minutes("POST", settings) == 4320
    assert fresh_window_minutes(None, settings) == 4320


def test_scan_runs_the_whole_pipeline(fake_adapter):
    seed_symbol(fake_adapter)
    scanner = OptionsFlowScanner(fake_adapter, scan_settings=RELAXED)

    result = asyncio.run(scanner.scan(" xyz ", now=NOW))

    assert result.symbol == "XYZ"
    assert result.market == "US"
    assert result.expirations == [EXPIRY, date(2024, 1, 26)]
    assert result.fresh_window_mins == 60
    assert result.money_flow_strength == pytest.approx(1.0)
    assert result.days_to_earnings is None
    assert [signal.strike for signal in result.signals] == [105.0]
    signal = result.signals[0]
    assert signal.spot_confirmation is SpotConfirmation.STRONG
    assert 0.0 <= signal.hedge_score <= 1.0
    assert signal.signal_quality > 0.0
    assert result.sentiment.sentiment > 0
    assert result.extended.money_flow_strength == pytest.approx(1.0)
    assert result.rejections["outside_band"] == 1
    assert result.rejections["below_threshold"] == 1
    assert result.activity.trend == "neutral"
    assert result.combos == []


def test_scan_many_collects_failures(fake_adapter):
    seed_symbol(fake_adapter)
    scanner = OptionsFlowScanner(fake_adapter, scan_settings=RELAXED)

    results, errors = asyncio.run(scanner.scan_many(["XYZ", "MISSING"]))

    assert [result.symbol for result in results] == ["XYZ"]
    assert [error.symbol for error in errors] == ["MISSING"]
    assert "MISSING" in errors[0].reason
