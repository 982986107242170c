"""Fundamental value scoring on a 0-6 scale with sector-aware thresholds."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from flowscan.adapters.base import AdapterError, Fundamentals, MarketDataAdapter
from flowscan.models.market import ValueScore

from .base import FeatureScorer, ValueContext
from .config import DEFAULT_VALUE_CONFIG
from .engine import CompositeScoringEngine

logger = logging.getLogger(__name__)

Score = Tuple[float, List[str], List[str]]


class _ThresholdScorer:
    """Scores one metric against ``good``/``fair``/``poor`` cut-offs.

    Lower-is-better metrics score +1 below ``good``, +0.5 below ``fair`` and
    -0.5 above ``poor``. Higher-is-better metrics mirror that.
    """

    key = ""
    label = ""
    attribute = ""
    lower_is_better = True
    unit = ""
    default_weight = 1.0

    def score(self, context: ValueContext) -> Score:
        value = getattr(context.fundamentals, self.attribute)
        if value is None:
            return 0.0, [f"{self.label} unavailable"], ["unavailable"]

        limits = context.thresholds.get(self.key, {})
        good, fair, poor = limits.get("good"), limits.get("fair"), limits.get("poor")
        shown = f"{value:.1f}{self.unit}"

        special = self._special_case(value)
        if special is not None:
            return special

        if self.lower_is_better:
            if good is not None and value < good:
                return 1.0, [f"{self.label} {shown} below {good:g}{self.unit}"], ["cheap"]
            if fair is not None and value < fair:
                return 0.5, [f"{self.label} {shown} below {fair:g}{self.unit}"], []
            if poor is not None and value > poor:
                return -0.5, [f"{self.label} {shown} above {poor:g}{self.unit}"], ["expensive"]
        else:
            if good is not None and value > good:
                return 1.0, [f"{self.label} {shown} above {good:g}{self.unit}"], ["quality"]
            if fair is not None and value > fair:
                return 0.5, [f"{self.label} {shown} above {fair:g}{self.unit}"], []
            if poor is not None and value < poor:
                return -0.5, [f"{self.label} {shown} below {poor:g}{self.unit}"], ["weak"]
        return 0.0, [], []

    def _special_case(self, value: float) -> Optional[Score]:
        return None


class PriceToBookScorer(_ThresholdScorer):
    key = "pb"
    label = "P/B"
    attribute = "pb"

    def _special_case(self, value: float) -> Optional[Score]:
        if value <= 0:
            return -0.5, ["Negative book value"], ["expensive"]
        return None


class PriceToEarningsScorer(_ThresholdScorer):
    key = "pe"
    label = "P/E"
    attribute = "pe"

    def _special_case(self, value: float) -> Optional[Score]:
        if value <= 0:
            return -0.5, ["Negative earnings"], ["unprofitable"]
        return None


class ReturnOnEquityScorer(_ThresholdScorer):
    key = "roe"
    label = "ROE"
    attribute = "roe"
    lower_is_better = False
    unit = "%"


class ProfitMarginScorer(_ThresholdScorer):
    key = "profit_margin"
    label = "Profit margin"
    attribute = "profit_margin"
    lower_is_better = False
    unit = "%"


class DebtToEquityScorer(_ThresholdScorer):
    key = "debt_to_equity"
    label = "Debt/Equity"
    attribute = "debt_to_equity"
    unit = "%"

    def _special_case(self, value: float) -> Optional[Score]:
        if value < 0:
            return -0.5, ["Negative shareholder equity"], ["weak"]
        return None


class RevenueGrowthScorer(_ThresholdScorer):
    key = "revenue_growth"
    label = "Revenue growth"
    attribute = "revenue_growth"
    lower_is_better = False
    unit = "%"


VALUE_SCORER_REGISTRY: Dict[str, Type[FeatureScorer]] = {
    PriceToBookScorer.key: PriceToBookScorer,
    PriceToEarningsScorer.key: PriceToEarningsScorer,
    ReturnOnEquityScorer.key: ReturnOnEquityScorer,
    ProfitMarginScorer.key: ProfitMarginScorer,
    DebtToEquityScorer.key: DebtToEquityScorer,
    RevenueGrowthScorer.key: RevenueGrowthScorer,
}


class ValueAnalyzer(CompositeScoringEngine):
    """Scores fundamentals; missing metrics contribute 0 and an "unavailable" reason."""

    registry = VALUE_SCORER_REGISTRY
    default_config = DEFAULT_VALUE_CONFIG

    def __init__(self, adapter: Optional[MarketDataAdapter] = None, config: Dict[str, Any] | None = None):
        super().__init__(config)
        self._adapter = adapter

    def thresholds_for(self, sector: Optional[str]) -> Dict[str, Dict[str, float]]:
        resolved = {key: dict(limits) for key, limits in self.config.get("thresholds", {}).items()}
        overrides = self.config.get("sector_thresholds", {}).get(sector or "", {})
        for key, limits in overrides.items():
            resolved[key] = {**resolved.get(key, {}), **limits}
        return resolved

    def score_fundamentals(self, fundamentals: Fundamentals) -> ValueScore:
        thresholds = self.thresholds_for(fundamentals.sector)
        context = ValueContext(config=self.config, fundamentals=fundamentals, thresholds=thresholds)
        result = self.evaluate(context)
        return ValueScore(
            symbol=fundamentals.symbol,
            name=fundamentals.name,
            price=fundamentals.price or 0.0,
            sector=fundamentals.sector,
            score=round(result.total, 2),
            metrics={
                "pb": fundamentals.pb,
                "pe": fundamentals.pe,
                "roe": fundamentals.roe,
                "profit_margin": fundamentals.profit_margin,
                "debt_to_equity": fundamentals.debt_to_equity,
                "revenue_growth": fundamentals.revenue_growth,
            },
            reasons=result.reasons,
            breakdowns=result.breakdowns,
            thresholds=thresholds,
        )

    def analyze(self, symbol: str) -> Optional[ValueScore]:
        """Fetch fundamentals and score them; ``None`` when the provider has nothing."""

        if self._adapter is None:
            raise RuntimeError("ValueAnalyzer.analyze requires a market data adapter")
        try:
            fundamentals = self._adapter.get_fundamentals(symbol)
        except (AdapterError, NotImplementedError) as exc:
            logger.warning("Value analysis unavailable for %s: %s", symbol, exc)
            return None
        return self.score_fundamentals(fundamentals)


__all__ = ["VALUE_SCORER_REGISTRY", "ValueAnalyzer"]
