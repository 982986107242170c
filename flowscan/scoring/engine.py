from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Type

from flowscan.models.market import ScoreBreakdown

from .base import FeatureScorer, ScoreContext
from .config import merge_config


@dataclass
class EngineResult:
    total: float
    breakdowns: List[ScoreBreakdown] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


class CompositeScoringEngine:
    """Sums weighted scores from enabled scorers and clamps to the configured bounds."""

    registry: Mapping[str, Type[FeatureScorer]] = {}
    default_config: Dict[str, Any] = {}

    def __init__(self, config: Dict[str, Any] | None = None):
        self.config = merge_config(self.default_config, config)
        enabled = self.config.get("enabled", list(self.registry))
        self._scorers = [self._instantiate(key) for key in enabled if key in self.registry]

    def _instantiate(self, key: str) -> FeatureScorer:
        scorer_cls = self.registry[key]
        return scorer_cls()

    def evaluate(self, context: ScoreContext) -> EngineResult:
        breakdowns: List[ScoreBreakdown] = []
        total = 0.0
        all_reasons: List[str] = []
        all_tags: List[str] = []

        for scorer in self._scorers:
            raw_score, reasons, tags = scorer.score(context)
            weight = context.get_weight(scorer.key, getattr(scorer, "default_weight", 1.0))
            weighted_score = raw_score * weight
            total += weighted_score
            breakdowns.append(
                ScoreBreakdown(
                    scorer=scorer.key,
                    weight=weight,
                    raw_score=raw_score,
                    weighted_score=weighted_score,
                    reasons=reasons,
                    tags=tags,
                )
            )
            all_reasons.extend(reasons)
            all_tags.extend(tags)

        bounds = self.config.get("score_bounds", {})
        min_score = float(bounds.get("min", 0.0))
        max_score = float(bounds.get("max", 100.0))
        total = max(min_score, min(max_score, total))
        return EngineResult(total=total, breakdowns=breakdowns, reasons=all_reasons, tags=all_tags)

    @property
    def enabled_scorers(self) -> List[str]:
        return [scorer.key for scorer in self._scorers]


__all__ = ["CompositeScoringEngine", "EngineResult"]
