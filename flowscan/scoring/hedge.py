"""Hedge-likelihood scoring.

Scores near 1 mean a print looks like protection; scores near 0 look like a
directional bet. Each feature below fires independently and contributes its
weight (positive features push toward hedge, negative toward directional).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from flowscan.models.signal import OptionSignal, TradeDirection, TraderType

from .base import FeatureScorer, HedgeContext
from .config import DEFAULT_HEDGE_CONFIG
from .engine import CompositeScoringEngine

Score = Tuple[float, List[str], List[str]]


class _FlagScorer:
    """Fires ``direction`` (+1 or -1) when :meth:`fires` is true and tags itself."""

    key = ""
    tag = ""
    reason = ""
    direction = 1.0
    default_weight = 0.0

    def fires(self, context: HedgeContext) -> bool:
        raise NotImplementedError

    def score(self, context: HedgeContext) -> Score:
        if not self.fires(context):
            return 0.0, [], []
        return self.direction, [self.reason], [self.tag]


class DeepOTMPutScorer(_FlagScorer):
    key = "deep_otm_put"
    tag = "deepOTMPut"
    reason = "Deep out-of-the-money put"
    default_weight = 0.35

    def fires(self, context: HedgeContext) -> bool:
        return context.signal.is_deep_otm_put


class SmallCapRatioScorer(_FlagScorer):
    key = "small_cap_ratio"
    tag = "smallCapRatio"
    reason = "Notional is tiny relative to market cap"
    default_weight = 0.15

    def fires(self, context: HedgeContext) -> bool:
        ratio = context.signal.notional_to_market_cap
        return 0 < ratio <= context.get_option("small_cap_ratio_cut", 0.00005)


class LongTermScorer(_FlagScorer):
    key = "long_term"
    tag = "longTerm"
    reason = "Long-dated tenor"
    default_weight = 0.25

    def fires(self, context: HedgeContext) -> bool:
        return context.signal.is_long_term_hedge


class ComboHedgeScorer(_FlagScorer):
    key = "combo_hedge"
    tag = "comboHedge"
    reason = "Leg of a multi-leg combo"
    default_weight = 0.4

    def fires(self, context: HedgeContext) -> bool:
        return context.signal.is_combo_hedge


class ShortTermDirectionalScorer(_FlagScorer):
    key = "short_term_directional"
    tag = "shortTermDirectional"
    reason = "Short-dated speculative tenor"
    direction = -1.0
    default_weight = 0.35

    def fires(self, context: HedgeContext) -> bool:
        return context.signal.is_short_term_spec


class LargeOTMCallScorer(_FlagScorer):
    key = "large_otm_call"
    tag = "largeOTMCall"
    reason = "Large short-dated OTM call purchase"
    direction = -1.0
    default_weight = 0.25

    def fires(self, context: HedgeContext) -> bool:
        return context.signal.is_large_otm_call


class HighIVDirectionalScorer(_FlagScorer):
    key = "high_iv_directional"
    tag = "highIVDirectional"
    reason = "Paying up for high implied volatility"
    direction = -1.0
    default_weight = 0.15

    def fires(self, context: HedgeContext) -> bool:
        signal = context.signal
        return signal.implied_volatility > context.get_option("high_iv_cut", 0.5) and signal.direction is TradeDirection.BUY


class InstitutionalScorer(_FlagScorer):
    key = "institutional"
    tag = "institutional"
    reason = "Institutional size"
    direction = -1.0
    default_weight = 0.1

    def fires(self, context: HedgeContext) -> bool:
        return context.signal.trader_type is TraderType.INSTITUTIONAL


class MoneyFlowScorer:
    """Cross-checks the signal's bias against the underlying's money flow."""

    key = "money_flow"
    default_weight = 1.0

    def score(self, context: HedgeContext) -> Score:
        signal = context.signal
        mfs = context.money_flow_strength
        confirm = context.get_option("money_flow_confirm_weight", 0.2)
        contradict = context.get_option("money_flow_contradiction_weight", 0.25)

        if signal.is_bullish and mfs > 0:
            return -confirm * mfs, ["Money inflow confirms bullish flow"], ["moneyFlowBullishConfirm"]
        if signal.is_bearish and mfs < 0:
            return -confirm * abs(mfs), ["Money outflow confirms bearish flow"], ["moneyFlowBearishConfirm"]
        if (signal.is_bullish and mfs < 0) or (signal.is_bearish and mfs > 0):
            return contradict * abs(mfs), ["Money flow contradicts option flow"], ["moneyFlowContradiction"]
        return 0.0, [], []


HEDGE_SCORER_REGISTRY: Dict[str, Type[FeatureScorer]] = {
    DeepOTMPutScorer.key: DeepOTMPutScorer,
    SmallCapRatioScorer.key: SmallCapRatioScorer,
    LongTermScorer.key: LongTermScorer,
    ComboHedgeScorer.key: ComboHedgeScorer,
    ShortTermDirectionalScorer.key: ShortTermDirectionalScorer,
    LargeOTMCallScorer.key: LargeOTMCallScorer,
    HighIVDirectionalScorer.key: HighIVDirectionalScorer,
    InstitutionalScorer.key: InstitutionalScorer,
    MoneyFlowScorer.key: MoneyFlowScorer,
}


class HedgeScoringEngine(CompositeScoringEngine):
    registry = HEDGE_SCORER_REGISTRY
    default_config = DEFAULT_HEDGE_CONFIG

    def score_signal(self, signal: OptionSignal, money_flow_strength: float = 0.0) -> OptionSignal:
        context = HedgeContext(config=self.config, signal=signal, money_flow_strength=money_flow_strength)
        result = self.evaluate(context)
        return signal.model_copy(update={"hedge_score": result.total, "hedge_tags": result.tags})

    def score_signals(
        self, signals: Iterable[OptionSignal], money_flow_strength: float = 0.0
    ) -> List[OptionSignal]:
        return [self.score_signal(signal, money_flow_strength) for signal in signals]


def compute_hedge_scores(
    signals: Sequence[OptionSignal],
    money_flow_strength: float,
    config: Optional[Dict[str, object]] = None,
) -> List[OptionSignal]:
    """Return copies of ``signals`` with ``hedge_score`` in [0, 1] and ``hedge_tags`` set."""

    return HedgeScoringEngine(config).score_signals(signals, money_flow_strength)


__all__ = [
    "HEDGE_SCORER_REGISTRY",
    "HedgeScoringEngine",
    "compute_hedge_scores",
]
