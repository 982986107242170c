from __future__ import annotations

import pytest

from flowscan.adapters.base import Fundamentals
from flowscan.scoring.value import ValueAnalyzer


def test_all_metrics_unavailable_scores_zero():
    result = ValueAnalyzer().score_fundamentals(Fundamentals(symbol="EMPTY"))

    assert result.score == 0
    assert result.reasons == [
        "P/B unavailable",
        "P/E unavailable",
        "ROE unavailable",
        "Profit margin unavailable",
        "Debt/Equity unavailable",
        "Revenue growth unavailable",
    ]
    assert all(value is None for value in result.metrics.values())


def test_strong_fundamentals_reach_the_ceiling():
    fundamentals = Fundamentals(
        symbol="VAL",
        price=40.0,
        pb=1.0,
        pe=10.0,
        roe=25.0,
        profit_margin=25.0,
        debt_to_equity=30.0,
        revenue_growth=20.0,
    )

    result = ValueAnalyzer().score_fundamentals(fundamentals)

    assert result.score == 6
    assert result.price == 40.0
    assert len(result.breakdowns) == 6


def test_weak_fundamentals_are_floored_at_zero():
    fundamentals = Fundamentals(
        symbol="BAD",
        pb=10.0,
        pe=60.0,
        roe=2.0,
        profit_margin=-5.0,
        debt_to_equity=300.0,
        revenue_growth=-10.0,
    )

    assert ValueAnalyzer().score_fundamentals(fundamentals).score == 0


def test_partial_credit_sums_half_points():
    fundamentals = Fundamentals(symbol="MID", pb=2.0, pe=20.0, roe=12.0, debt_to_equity=150.0, revenue_growth=3.0)

    result = ValueAnalyzer().score_fundamentals(fundamentals)

    assert result.score == pytest.approx(1.5)
    assert "Profit margin unavailable" in result.reasons


def test_sector_thresholds_relax_technology_multiples():
    analyzer = ValueAnalyzer()
    generic = analyzer.score_fundamentals(Fundamentals(symbol="GEN", pe=25.0))
    tech = analyzer.score_fundamentals(Fundamentals(symbol="TEC", pe=25.0, sector="Technology"))

    assert generic.score == 0
    assert tech.score == pytest.approx(0.5)
    assert tech.thresholds["pe"] == {"good": 20.0, "fair": 30.0, "poor": 60.0}
    assert analyzer.thresholds_for(None)["pe"]["good"] == 15.0


def test_negative_earnings_and_book_value_are_penalised():
    result = ValueAnalyzer().score_fundamentals(Fundamentals(symbol="NEG", pe=-4.0, pb=-1.0, roe=30.0))

    assert "Negative earnings" in result.reasons
    assert "Negative book value" in result.reasons
    assert result.score == 0


def test_score_stays_in_bounds_for_mixed_inputs():
    for pe in (-10.0, 5.0, 30.0, 200.0):
        for growth in (-50.0, 0.0, 80.0):
            fundamentals = Fundamentals(symbol="RNG", pe=pe, revenue_growth=growth, pb=0.5, roe=40.0)
            assert 0 <= ValueAnalyzer().score_fundamentals(fundamentals).score <= 6


def test_analyze_uses_the_adapter(fake_adapter):
    fake_adapter.fundamentals["AAPL"] = Fundamentals(symbol="AAPL", price=190.0, pe=12.0, sector="Technology")
    analyzer = ValueAnalyzer(fake_adapter)

    result = analyzer.analyze("AAPL")

    assert result is not None
    assert result.sector == "Technology"
    assert result.score == pytest.approx(1.0)
    assert analyzer.analyze("MISSING") is None


def test_analyze_requires_an_adapter():
    with pytest.raises(RuntimeError):
        ValueAnalyzer().analyze("AAPL")
