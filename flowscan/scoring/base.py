from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Tuple

from flowscan.adapters.base import Fundamentals
from flowscan.models.signal import OptionSignal


@dataclass(frozen=True)
class ScoreContext:
    """Configuration shared by every scorer."""

    config: Dict[str, Any]

    def get_weight(self, scorer_key: str, default: float) -> float:
        return float(self.config.get("weights", {}).get(scorer_key, default))

    def get_option(self, key: str, default: float) -> float:
        return float(self.config.get(key, default))


@dataclass(frozen=True)
class HedgeContext(ScoreContext):
    """A single signal plus the symbol's money-flow strength."""

    signal: OptionSignal
    money_flow_strength: float = 0.0


@dataclass(frozen=True)
class ValueContext(ScoreContext):
    """Fundamentals with the thresholds resolved for the symbol's sector."""

    fundamentals: Fundamentals
    thresholds: Dict[str, Dict[str, float]]


class FeatureScorer(Protocol):
    """Protocol each scoring component must implement."""

    key: str
    default_weight: float

    def score(self, context: Any) -> Tuple[float, List[str], List[str]]:
        """Return raw score, reasoning strings, and tags."""


__all__ = ["FeatureScorer", "HedgeContext", "ScoreContext", "ValueContext"]
