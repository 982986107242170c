from __future__ import annotations

import math

import pytest

from flowscan.config.loader import SentimentSettings, ThresholdPolicy
from flowscan.models.signal import OptionType, SpotConfirmation, TradeDirection
from flowscan.options.sentiment import (
    aggregate_sentiment,
    aggregate_spot_confirmation,
    compute_extended_sentiment,
    median_market_cap,
    resolve_threshold,
)

BUY = TradeDirection.BUY
SELL = TradeDirection.SELL


def extended(signals, **settings):
    base = aggregate_sentiment(signals, "XYZ")
    return compute_extended_sentiment(signals, base, 100.0, SentimentSettings(**settings))


def test_empty_signals_score_zero():
    base = aggregate_sentiment([], "XYZ")
    ext = compute_extended_sentiment([], base, 100.0, SentimentSettings())

    assert base.sentiment == 0
    assert base.put_call_ratio == 0
    assert ext.sentiment_decayed == 0
    assert ext.sentiment_decayed_adj == 0
    assert ext.last_trade_min_ago is None
    assert ext.spot_confirmation is None


def test_instantaneous_mix(make_signal):
    signals = [
        make_signal(notional=300.0, pos=0.875),
        make_signal(option_type=OptionType.PUT, notional=100.0, pos=0.2),
    ]

    snapshot = aggregate_sentiment(signals, "XYZ")

    assert snapshot.bullish_notional == 300
    assert snapshot.bearish_notional == 100
    assert snapshot.ask_bias == pytest.approx(0.75)
    assert snapshot.put_call_ratio == pytest.approx(1 / 3)
    assert snapshot.sentiment == pytest.approx(55.0)


def test_one_sided_tapes_stay_in_bounds(make_signal):
    bullish = aggregate_sentiment([make_signal(notional=1e9)], "XYZ")
    bearish = aggregate_sentiment([make_signal(option_type=OptionType.PUT, notional=1e9)], "XYZ")

    assert bullish.sentiment == 100.0
    assert bearish.sentiment == pytest.approx(-90.0)
    assert math.isinf(bearish.put_call_ratio)


def test_decayed_score_follows_tanh_and_confidence(make_signal):
    ext = extended([make_signal(notional=1_000_000.0, age_minutes=0.0)])

    expected = (100 * math.tanh(1.0) + 5 * 0.5) * (1 - math.exp(-1.0))
    assert ext.sentiment_decayed == pytest.approx(expected)
    assert ext.total_notional_decayed == pytest.approx(1_000_000.0)
    assert ext.window_bullish_over_threshold is True


def test_half_life_halves_the_weight(make_signal):
    ext = extended([make_signal(notional=1000.0, age_minutes=120.0)], half_life_mins=120)

    assert ext.total_notional_decayed == pytest.approx(500.0)
    assert ext.last_trade_min_ago == pytest.approx(120.0)


def test_window_counts_raw_notional_of_recent_prints(make_signal):
    signals = [
        make_signal(notional=1000.0, age_minutes=30.0),
        make_signal(notional=5000.0, age_minutes=90.0),
        make_signal(option_type=OptionType.PUT, notional=700.0, age_minutes=10.0),
    ]

    ext = extended(signals, window_mins=60)

    assert ext.window_bullish_notional_raw == 1000.0
    assert ext.window_bearish_notional_raw == 700.0
    assert ext.window_bullish_over_threshold is False
    assert ext.window_bullish_threshold_used == 1_000_000


def test_hedge_adjustment_discounts_probable_hedges(make_signal):
    signals = [make_signal(notional=1000.0, age_minutes=0.0, hedge_score=1.0), make_signal(notional=1000.0, age_minutes=0.0)]

    ext = extended(signals, alpha=0.5)

    assert ext.total_notional_decayed_adj == pytest.approx(1500.0)
    assert ext.hedge_signals_count == 1
    assert ext.hedge_notional_share == pytest.approx(0.5)


def test_buyers_only_policy_drops_sells_from_the_numerator(make_signal):
    signals = [
        make_signal(notional=100.0, age_minutes=0.0),
        make_signal(option_type=OptionType.PUT, direction=SELL, moneyness=0.9, notional=100.0, age_minutes=0.0),
    ]

    standard = extended(signals)
    buyers = extended(signals, aggregation_policy="buyersOnly")
    aux = extended(signals, aggregation_policy="buyersOnlyAuxSP", aux_short_put_weight=0.35)

    assert standard.bullish_notional_decayed == 200.0
    assert buyers.bullish_notional_decayed == 100.0
    assert buyers.total_notional_decayed == 200.0
    assert buyers.aggregation_policy == "buyersOnly"
    assert buyers.sentiment_decayed < standard.sentiment_decayed
    assert buyers.sentiment_decayed_adj < aux.sentiment_decayed_adj < standard.sentiment_decayed_adj
    assert aux.bullish_notional_decayed_adj == 100.0


def test_extended_scores_stay_in_bounds(make_signal):
    for notional in (1.0, 1e6, 1e12):
        for option_type in (OptionType.CALL, OptionType.PUT):
            for direction in (BUY, SELL):
                signals = [
                    make_signal(option_type=option_type, direction=direction, notional=notional, age_minutes=0.0)
                ]
                ext = extended(signals)
                assert -100 <= ext.sentiment <= 100
                assert -100 <= ext.sentiment_decayed <= 100
                assert -100 <= ext.sentiment_decayed_adj <= 100


def test_threshold_resolution():
    capratio = ThresholdPolicy(mode="capratio")

    assert resolve_threshold(5e10, 1e6, None) == 1e6
    assert resolve_threshold(5e10, 1e6, capratio) == 200_000
    assert resolve_threshold(1e13, 1e6, capratio) == 5_000_000
    assert resolve_threshold(0.0, 1e6, capratio) == 1e6
    assert resolve_threshold(5e10, 1e6, ThresholdPolicy(static_min_bullish=250_000)) == 250_000


def test_capratio_policy_uses_median_market_cap(make_signal):
    signals = [make_signal(market_cap=cap, notional=300_000.0, age_minutes=1.0) for cap in (1e11, 2e11, 3e11)]

    ext = extended(signals, threshold_policy={"mode": "capratio"})

    assert median_market_cap(signals) == 2e11
    assert ext.window_bullish_threshold_used == pytest.approx(400_000)
    assert ext.window_bullish_over_threshold is True


def test_spot_confirmation_aggregate(make_signal):
    strong = make_signal(spot_confirmation=SpotConfirmation.STRONG)
    contra = make_signal(spot_confirmation=SpotConfirmation.CONTRADICTION)

    assert aggregate_spot_confirmation([strong, strong, strong, contra]) is SpotConfirmation.STRONG
    assert aggregate_spot_confirmation([contra, contra, contra, strong]) is SpotConfirmation.CONTRADICTION
    assert aggregate_spot_confirmation([strong, contra]) is SpotConfirmation.WEAK
    assert aggregate_spot_confirmation([]) is None
