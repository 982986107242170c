from __future__ import annotations

import copy
from typing import Any, Dict

DEFAULT_HEDGE_CONFIG: Dict[str, Any] = {
    "enabled": [
        "deep_otm_put",
        "small_cap_ratio",
        "long_term",
        "combo_hedge",
        "short_term_directional",
        "large_otm_call",
        "high_iv_directional",
        "institutional",
        "money_flow",
    ],
    "weights": {
        "deep_otm_put": 0.35,
        "small_cap_ratio": 0.15,
        "long_term": 0.25,
        "combo_hedge": 0.4,
        "short_term_directional": 0.35,
        "large_otm_call": 0.25,
        "high_iv_directional": 0.15,
        "institutional": 0.1,
        "money_flow": 1.0,
    },
    "small_cap_ratio_cut": 0.00005,
    "high_iv_cut": 0.5,
    "money_flow_confirm_weight": 0.2,
    "money_flow_contradiction_weight": 0.25,
    "score_bounds": {
        "min": 0.0,
        "max": 1.0,
    },
}

# Each category maps to ``good``/``fair``/``poor`` cut-offs. For ``direction: low``
# metrics smaller is better (value < good scores +1, < fair +0.5, > poor -0.5);
# for ``direction: high`` the comparisons are mirrored.
DEFAULT_VALUE_THRESHOLDS: Dict[str, Dict[str, float]] = {
    "pb": {"good": 1.5, "fair": 3.0, "poor": 8.0},
    "pe": {"good": 15.0, "fair": 25.0, "poor": 50.0},
    "roe": {"good": 15.0, "fair": 10.0, "poor": 5.0},
    "profit_margin": {"good": 20.0, "fair": 10.0, "poor": 0.0},
    "debt_to_equity": {"good": 50.0, "fair": 100.0, "poor": 200.0},
    "revenue_growth": {"good": 15.0, "fair": 5.0, "poor": 0.0},
}

SECTOR_VALUE_THRESHOLDS: Dict[str, Dict[str, Dict[str, float]]] = {
    "Technology": {
        "pe": {"good": 20.0, "fair": 30.0, "poor": 60.0},
        "pb": {"good": 3.0, "fair": 6.0, "poor": 15.0},
        "revenue_growth": {"good": 20.0, "fair": 10.0, "poor": 0.0},
    },
    "Communication Services": {
        "pe": {"good": 18.0, "fair": 28.0, "poor": 55.0},
        "pb": {"good": 2.5, "fair": 5.0, "poor": 12.0},
    },
    "Financial Services": {
        "pe": {"good": 12.0, "fair": 20.0, "poor": 75.0},
        "pb": {"good": 1.0, "fair": 1.5, "poor": 3.0},
        "roe": {"good": 12.0, "fair": 8.0, "poor": 4.0},
        "debt_to_equity": {"good": 300.0, "fair": 600.0, "poor": 1000.0},
    },
    "Utilities": {
        "pe": {"good": 16.0, "fair": 22.0, "poor": 35.0},
        "roe": {"good": 10.0, "fair": 7.0, "poor": 3.0},
        "debt_to_equity": {"good": 120.0, "fair": 180.0, "poor": 300.0},
        "revenue_growth": {"good": 6.0, "fair": 2.0, "poor": -2.0},
    },
    "Real Estate": {
        "pe": {"good": 25.0, "fair": 40.0, "poor": 80.0},
        "pb": {"good": 1.2, "fair": 2.0, "poor": 4.0},
        "debt_to_equity": {"good": 100.0, "fair": 150.0, "poor": 250.0},
    },
    "Energy": {
        "pe": {"good": 10.0, "fair": 15.0, "poor": 30.0},
        "profit_margin": {"good": 15.0, "fair": 8.0, "poor": 0.0},
    },
    "Healthcare": {
        "pe": {"good": 18.0, "fair": 28.0, "poor": 60.0},
        "pb": {"good": 2.5, "fair": 5.0, "poor": 10.0},
    },
}

DEFAULT_VALUE_CONFIG: Dict[str, Any] = {
    "enabled": ["pb", "pe", "roe", "profit_margin", "debt_to_equity", "revenue_growth"],
    "weights": {
        "pb": 1.0,
        "pe": 1.0,
        "roe": 1.0,
        "profit_margin": 1.0,
        "debt_to_equity": 1.0,
        "revenue_growth": 1.0,
    },
    "thresholds": copy.deepcopy(DEFAULT_VALUE_THRESHOLDS),
    "sector_thresholds": copy.deepcopy(SECTOR_VALUE_THRESHOLDS),
    "score_bounds": {
        "min": 0.0,
        "max": 6.0,
    },
}


def merge_config(defaults: Dict[str, Any], overrides: Dict[str, Any] | None) -> Dict[str, Any]:
    """Overlay ``overrides`` on ``defaults``; nested mappings are merged one level deep."""

    merged = copy.deepcopy(defaults)
    if not overrides:
        return merged
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


__all__ = [
    "DEFAULT_HEDGE_CONFIG",
    "DEFAULT_VALUE_CONFIG",
    "DEFAULT_VALUE_THRESHOLDS",
    "SECTOR_VALUE_THRESHOLDS",
    "merge_config",
]
