"""Notional sentiment aggregation for classified option signals.

``aggregate_sentiment`` is the plain point-in-time read. The extended read
time-decays each print by its age, discounts probable hedges and applies an
aggregation policy (``standard``, ``buyersOnly`` or ``buyersOnlyAuxSP``).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np

from flowscan.config.loader import SentimentSettings, ThresholdPolicy
from flowscan.models.results import ExtendedSentiment, SentimentSnapshot
from flowscan.models.signal import (
    OptionSignal,
    OptionType,
    SpotConfirmation,
    TradeDirection,
    TraderType,
)

logger = logging.getLogger(__name__)

ASK_SIDE_POS = 0.66
AUX_MONEYNESS_CUT = 0.95
CORE_SCALE = 100.0
ASK_WEIGHT = 5.0


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def _put_call_ratio(put_notional: float, call_notional: float) -> float:
    if call_notional > 0:
        return put_notional / call_notional
    return math.inf if put_notional > 0 else 0.0


def aggregate_sentiment(signals: Sequence[OptionSignal], symbol: str) -> SentimentSnapshot:
    """Undecayed bullish/bearish notional split with a [-100, 100] score."""

    bullish = bearish = ask = total = puts = calls = 0.0
    for signal in signals:
        total += signal.notional
        if signal.option_type is OptionType.CALL:
            calls += signal.notional
        else:
            puts += signal.notional
        if signal.pos >= ASK_SIDE_POS:
            ask += signal.notional
        if signal.is_bullish:
            bullish += signal.notional
        elif signal.is_bearish:
            bearish += signal.notional

    ask_bias = ask / total if total > 0 else 0.0
    score = 100.0 * (bullish - bearish) / total + 20.0 * (ask_bias - 0.5) if total > 0 else 0.0
    snapshot = SentimentSnapshot(
        symbol=symbol,
        bullish_notional=bullish,
        bearish_notional=bearish,
        total_notional=total,
        put_notional=puts,
        call_notional=calls,
        put_call_ratio=_put_call_ratio(puts, calls),
        ask_bias=ask_bias,
        sentiment=_clamp(score, -100.0, 100.0),
    )
    logger.debug("Base sentiment for %s: %.2f over %d signals", symbol, snapshot.sentiment, len(signals))
    return snapshot


@dataclass
class _DecayedTotals:
    bullish: float = 0.0
    bearish: float = 0.0
    total: float = 0.0
    puts: float = 0.0
    calls: float = 0.0
    ask: float = 0.0
    bullish_adj: float = 0.0
    bearish_adj: float = 0.0
    total_adj: float = 0.0
    puts_adj: float = 0.0
    calls_adj: float = 0.0
    ask_adj: float = 0.0
    window_bullish: float = 0.0
    window_bearish: float = 0.0
    hedge: float = 0.0
    combo: float = 0.0
    last_trade_min_ago: float = math.inf


def _decay_weight(age_minutes: Optional[float], half_life: float) -> float:
    if age_minutes is None or not math.isfinite(age_minutes):
        return 0.0
    return 0.5 ** (age_minutes / half_life)


def _accumulate(
    signals: Iterable[OptionSignal], half_life: float, alpha: float, window_mins: float
) -> _DecayedTotals:
    totals = _DecayedTotals()
    for signal in signals:
        age = signal.age_minutes if signal.age_minutes is not None else math.inf
        totals.last_trade_min_ago = min(totals.last_trade_min_ago, age)

        decayed = signal.notional * _decay_weight(signal.age_minutes, half_life)
        adjusted = decayed * (1.0 - alpha * signal.hedge_score)

        totals.total += decayed
        totals.total_adj += adjusted
        if signal.pos >= ASK_SIDE_POS:
            totals.ask += decayed
            totals.ask_adj += adjusted

        if signal.option_type is OptionType.CALL:
            totals.calls += decayed
            totals.calls_adj += adjusted
        else:
            totals.puts += decayed
            totals.puts_adj += adjusted

        if signal.is_bullish:
            totals.bullish += decayed
            totals.bullish_adj += adjusted
        elif signal.is_bearish:
            totals.bearish += decayed
            totals.bearish_adj += adjusted

        if age <= window_mins:
            if signal.is_bullish:
                totals.window_bullish += signal.notional
            elif signal.is_bearish:
                totals.window_bearish += signal.notional

        totals.hedge += decayed * signal.hedge_score
        if signal.is_combo_hedge:
            totals.combo += decayed
    return totals


def _apply_policy(signals: Sequence[OptionSignal], policy: str) -> List[OptionSignal]:
    if policy in ("buyersOnly", "buyersOnlyAuxSP"):
        return [signal for signal in signals if signal.direction is TradeDirection.BUY]
    return list(signals)


def _aux_short_put_contribution(
    signals: Iterable[OptionSignal], half_life: float, alpha: float, aux_weight: float
) -> float:
    """Adjusted notional of OTM put sales, which ``buyersOnlyAuxSP`` credits back as bullish."""

    contribution = 0.0
    for signal in signals:
        if (
            signal.option_type is OptionType.PUT
            and signal.direction is TradeDirection.SELL
            and math.isfinite(signal.moneyness)
            and signal.moneyness <= AUX_MONEYNESS_CUT
        ):
            decayed = signal.notional * _decay_weight(signal.age_minutes, half_life)
            contribution += decayed * (1.0 - alpha * signal.hedge_score) * aux_weight
    return contribution


def median_market_cap(signals: Iterable[OptionSignal]) -> float:
    caps = [signal.market_cap for signal in signals if math.isfinite(signal.market_cap) and signal.market_cap > 0]
    if not caps:
        return 0.0
    return float(np.median(caps))


def resolve_threshold(
    market_cap: float, min_bullish: float, policy: Optional[ThresholdPolicy]
) -> float:
    """Notional the bullish window must reach before a read counts as confident."""

    if policy is None:
        return min_bullish
    fallback = policy.static_min_bullish if policy.static_min_bullish is not None else min_bullish
    if policy.mode == "capratio" and market_cap > 0:
        return _clamp(market_cap * policy.cap_ratio, policy.cap_min, policy.cap_max)
    return fallback


def _score(core: float, ask_bias: float, total: float, threshold: float) -> float:
    confidence = 1.0 - math.exp(-total / threshold) if threshold > 0 and total > 0 else 0.0
    raw = CORE_SCALE * math.tanh(core) + ASK_WEIGHT * (ask_bias - 0.5)
    return _clamp(raw * confidence, -100.0, 100.0)


def _finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def aggregate_spot_confirmation(signals: Sequence[OptionSignal]) -> Optional[SpotConfirmation]:
    if not signals:
        return None
    strong = sum(1 for signal in signals if signal.spot_confirmation is SpotConfirmation.STRONG)
    contra = sum(1 for signal in signals if signal.spot_confirmation is SpotConfirmation.CONTRADICTION)
    if strong > contra * 2:
        return SpotConfirmation.STRONG
    if contra > strong * 2:
        return SpotConfirmation.CONTRADICTION
    return SpotConfirmation.WEAK


def compute_extended_sentiment(
    signals: Sequence[OptionSignal],
    base: SentimentSnapshot,
    current_price: float,
    settings: SentimentSettings,
    money_flow_strength: float = 0.0,
) -> ExtendedSentiment:
    half_life = max(1.0, float(settings.half_life_mins))
    alpha = settings.alpha
    policy = settings.aggregation_policy

    # Ask bias and totals always describe the whole tape.
    market = _accumulate(signals, half_life, alpha, settings.window_mins)
    effective = _apply_policy(signals, policy)
    metrics = _accumulate(effective, half_life, alpha, settings.window_mins)

    aux = 0.0
    if policy == "buyersOnlyAuxSP":
        aux = _aux_short_put_contribution(signals, half_life, alpha, settings.aux_short_put_weight)
        logger.debug(
            "%s policy for %s kept %d of %d signals, aux %.0f",
            policy,
            base.symbol,
            len(effective),
            len(signals),
            aux,
        )

    threshold = resolve_threshold(
        median_market_cap(effective), settings.min_bullish_window_notional, settings.threshold_policy
    )

    ask_bias = market.ask / market.total if market.total > 0 else 0.0
    ask_bias_adj = market.ask_adj / market.total_adj if market.total_adj > 0 else 0.0
    core = (metrics.bullish - metrics.bearish) / market.total if market.total > 0 else 0.0
    core_adj = (
        (metrics.bullish_adj + aux - metrics.bearish_adj) / market.total_adj if market.total_adj > 0 else 0.0
    )

    count = len(signals)
    return ExtendedSentiment(
        **base.model_dump(),
        current_price=current_price,
        bullish_notional_decayed=metrics.bullish,
        bearish_notional_decayed=metrics.bearish,
        total_notional_decayed=market.total,
        put_notional_decayed=metrics.puts,
        call_notional_decayed=metrics.calls,
        put_call_ratio_decayed=_finite_or_none(_put_call_ratio(metrics.puts, metrics.calls)),
        ask_bias_decayed=ask_bias,
        sentiment_decayed=_score(core, ask_bias, market.total, threshold),
        bullish_notional_decayed_adj=metrics.bullish_adj,
        bearish_notional_decayed_adj=metrics.bearish_adj,
        total_notional_decayed_adj=market.total_adj,
        put_notional_decayed_adj=metrics.puts_adj,
        call_notional_decayed_adj=metrics.calls_adj,
        put_call_ratio_decayed_adj=_finite_or_none(_put_call_ratio(metrics.puts_adj, metrics.calls_adj)),
        ask_bias_decayed_adj=ask_bias_adj,
        sentiment_decayed_adj=_score(core_adj, ask_bias_adj, market.total_adj, threshold),
        window_bullish_notional_raw=metrics.window_bullish,
        window_bearish_notional_raw=metrics.window_bearish,
        window_bullish_over_threshold=metrics.window_bullish >= threshold,
        window_bullish_threshold_used=threshold,
        hedge_signals_count=sum(1 for signal in signals if signal.hedge_score > 0),
        hedge_notional_share=metrics.hedge / market.total if market.total > 0 else 0.0,
        combo_hedge_share=metrics.combo / market.total if market.total > 0 else 0.0,
        window_mins=settings.window_mins,
        half_life_mins=settings.half_life_mins,
        aggregation_policy=policy,
        last_trade_min_ago=_finite_or_none(metrics.last_trade_min_ago),
        money_flow_strength=money_flow_strength,
        avg_iv=sum(signal.implied_volatility for signal in signals) / count if count else 0.0,
        institutional_share=(
            sum(1 for signal in signals if signal.trader_type is TraderType.INSTITUTIONAL) / count if count else 0.0
        ),
        days_to_earnings=signals[0].days_to_earnings if count else None,
        spot_confirmation=aggregate_spot_confirmation(signals),
    )


__all__ = [
    "aggregate_sentiment",
    "aggregate_spot_confirmation",
    "compute_extended_sentiment",
    "median_market_cap",
    "resolve_threshold",
]
