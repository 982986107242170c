from __future__ import annotations

from typing import Iterable, List, Optional

from flowscan.models.signal import OptionSignal, SpotConfirmation, TradeDirection, TraderType

MONEY_FLOW_CONFIRM_CUT = 0.2
MAX_SPREAD_FOR_QUALITY = 0.2

QUALITY_WEIGHTS = {
    "direction": 0.30,
    "spread": 0.20,
    "confirm": 0.20,
    "trader": 0.15,
    "hedge": 0.15,
}

CONFIRM_SCORES = {
    SpotConfirmation.STRONG: 1.0,
    SpotConfirmation.WEAK: 0.5,
    SpotConfirmation.CONTRADICTION: 0.2,
    None: 0.5,
}

TRADER_SCORES = {
    TraderType.INSTITUTIONAL: 1.0,
    TraderType.MIXED: 0.7,
    TraderType.RETAIL: 0.5,
}


def spot_confirmation(signal: OptionSignal, money_flow_strength: float) -> Optional[SpotConfirmation]:
    """Does money flow in the underlying agree with the option print's bias?"""

    if signal.direction is TradeDirection.NEUTRAL:
        return None
    if signal.is_bullish and money_flow_strength > MONEY_FLOW_CONFIRM_CUT:
        return SpotConfirmation.STRONG
    if signal.is_bearish and money_flow_strength < -MONEY_FLOW_CONFIRM_CUT:
        return SpotConfirmation.STRONG
    if signal.is_bullish and money_flow_strength < -MONEY_FLOW_CONFIRM_CUT:
        return SpotConfirmation.CONTRADICTION
    if signal.is_bearish and money_flow_strength > MONEY_FLOW_CONFIRM_CUT:
        return SpotConfirmation.CONTRADICTION
    return SpotConfirmation.WEAK


def signal_quality(
    direction_confidence: float,
    spread_pct: float,
    confirmation: Optional[SpotConfirmation],
    trader_type: TraderType,
    hedge_score: float,
) -> float:
    spread_score = max(0.0, 1.0 - spread_pct / MAX_SPREAD_FOR_QUALITY)
    return (
        direction_confidence * QUALITY_WEIGHTS["direction"]
        + spread_score * QUALITY_WEIGHTS["spread"]
        + CONFIRM_SCORES[confirmation] * QUALITY_WEIGHTS["confirm"]
        + TRADER_SCORES[trader_type] * QUALITY_WEIGHTS["trader"]
        + (1.0 - hedge_score) * QUALITY_WEIGHTS["hedge"]
    )


def enrich_signals(
    signals: Iterable[OptionSignal],
    money_flow_strength: float,
    days_to_earnings: Optional[int],
) -> List[OptionSignal]:
    """Stamp earnings distance, spot confirmation and a 0-1 quality score on each signal."""

    enriched: List[OptionSignal] = []
    for signal in signals:
        confirmation = spot_confirmation(signal, money_flow_strength)
        quality = signal_quality(
            signal.direction_confidence,
            signal.spread_pct,
            confirmation,
            signal.trader_type,
            signal.hedge_score,
        )
        enriched.append(
            signal.model_copy(
                update={
                    "days_to_earnings": days_to_earnings,
                    "spot_confirmation": confirmation,
                    "signal_quality": quality,
                }
            )
        )
    return enriched


__all__ = ["enrich_signals", "signal_quality", "spot_confirmation"]
