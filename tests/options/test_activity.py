from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from flowscan.options.activity import analyze_activity, analyze_chain_activity, daily_activity

NOW = datetime(2024, 1, 10, 15, 0, tzinfo=timezone.utc)


def make_contracts(last_day: dict, days: int = 8) -> pd.DataFrame:
    rows = []
    for offset in range(days, 0, -1):
        traded = NOW - timedelta(days=offset)
        day = last_day if offset == 1 else {}
        rows.append(
            {
                "type": "call",
                "volume": day.get("call_volume", 100),
                "openInterest": day.get("call_oi", 1000),
                "impliedVolatility": day.get("iv", 0.3),
                "lastTradeDate": traded,
            }
        )
        rows.append(
            {
                "type": "put",
                "volume": day.get("put_volume", 100),
                "openInterest": day.get("put_oi", 1000),
                "impliedVolatility": day.get("iv", 0.3),
                "lastTradeDate": traded,
            }
        )
    return pd.DataFrame(rows)


def test_daily_activity_buckets_by_trade_day_and_skips_today():
    contracts = make_contracts({})
    today_row = {"type": "call", "volume": 50, "openInterest": 10, "impliedVolatility": 0.2, "lastTradeDate": NOW}
    contracts = pd.concat([contracts, pd.DataFrame([today_row])], ignore_index=True)

    daily = daily_activity(contracts, now=NOW)

    assert len(daily) == 8
    assert daily["date"].iloc[-1] == (NOW - timedelta(days=1)).date()
    assert daily["put_call_ratio"].tolist() == [1.0] * 8
    assert daily["weighted_iv"].iloc[0] == pytest.approx(0.3)


def test_heavy_call_opening_is_bullish():
    contracts = make_contracts({"call_volume": 1000, "call_oi": 1200, "iv": 0.35})

    activity = analyze_activity(daily_activity(contracts, now=NOW))

    assert activity.trend == "bullish"
    assert activity.recent_activity == "Heavy call opening, IV rising"
    assert activity.pcr_trend == "decreasing"
    assert len(activity.signals) == 1
    assert activity.signals[0].strength == pytest.approx(1.0)


def test_falling_open_interest_on_volume_is_an_exit():
    contracts = make_contracts({"call_volume": 600, "put_volume": 500, "call_oi": 900})

    activity = analyze_activity(daily_activity(contracts, now=NOW))

    assert activity.signals[-1].signal == "exit"
    assert activity.trend == "neutral"


def test_short_history_is_neutral():
    activity = analyze_activity(daily_activity(make_contracts({}, days=3), now=NOW))

    assert activity.trend == "neutral"
    assert activity.signals == []
    assert activity.recent_activity == "Not enough history to analyse"


def test_chain_activity_with_no_frames():
    assert analyze_chain_activity([], now=NOW).trend == "neutral"
    assert analyze_chain_activity([pd.DataFrame()], now=NOW).signals == []
