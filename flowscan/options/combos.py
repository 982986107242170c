"""Multi-leg combo detection.

:func:`identify_combos` is pure: it reads a list of signals and returns the
assignment for every leg it pairs, keyed by position in the input. Signals
that already carry a ``combo_id`` are never re-paired, so feeding the output
of :func:`apply_combos` back in yields no new assignments.

Within a bucket every valid pair is collected first and pairs are then
taken greedily in order of (time difference, enumeration order), so the
closest trades win and a leg joins at most one combo.
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Set, Tuple

from flowscan.config.loader import ComboSettings
from flowscan.models.results import ComboSummary
from flowscan.models.signal import OptionSignal, OptionType, TradeDirection

logger = logging.getLogger(__name__)

BUY = TradeDirection.BUY
SELL = TradeDirection.SELL

_STRADDLE_LABELS = {
    (BUY, SELL): "synthetic-long",
    (SELL, BUY): "synthetic-short",
    (BUY, BUY): "long-straddle",
    (SELL, SELL): "short-straddle",
}
_STRANGLE_LABELS = {
    (BUY, BUY): "long-strangle",
    (SELL, SELL): "short-strangle",
}


@dataclass(frozen=True)
class ComboAssignment:
    combo_id: str
    combo_type: str
    strategy: str
    match_tier: Optional[int] = None


@dataclass(frozen=True)
class _Pair:
    time_diff: float
    order: int
    first: int
    second: int
    assignment: ComboAssignment


def simple_hash(text: str) -> str:
    """32-bit djb2-xor hash rendered as lowercase hex."""

    h = 5381
    for char in text:
        h = (((h << 5) + h) ^ ord(char)) & 0xFFFFFFFF
    return format(h, "x")


def _num(value: float) -> str:
    return format(value, "g")


def _time_diff_minutes(a: OptionSignal, b: OptionSignal) -> Optional[float]:
    if a.last_trade is None or b.last_trade is None:
        return None
    return abs((a.last_trade - b.last_trade).total_seconds()) / 60


def _ratio(a: float, b: float) -> float:
    low, high = sorted((a, b))
    return high / low if low > 0 else float("inf")


def _assignment(label: str, hash_input: str, tier: Optional[int] = None) -> ComboAssignment:
    combo_id = simple_hash(hash_input)
    return ComboAssignment(
        combo_id=combo_id,
        combo_type=f"{label}-{combo_id[:4]}",
        strategy=label,
        match_tier=tier,
    )


def _straddle_pairs(
    signals: Sequence[OptionSignal],
    calls: List[int],
    puts: List[int],
    expiration: date,
    settings: ComboSettings,
) -> List[_Pair]:
    tiers = settings.time_window_tiers
    ordered_calls = sorted(calls, key=lambda i: signals[i].last_trade_iso)
    ordered_puts = sorted(puts, key=lambda i: signals[i].last_trade_iso, reverse=True)

    pairs: List[_Pair] = []
    for call_idx in ordered_calls:
        for put_idx in ordered_puts:
            call, put = signals[call_idx], signals[put_idx]
            time_diff = _time_diff_minutes(call, put)
            if time_diff is None:
                continue
            tier = next((n for n, window in enumerate(tiers) if time_diff <= window), None)
            if tier is None:
                continue

            strike_diff = abs(call.strike - put.strike)
            directions = (call.direction, put.direction)
            if strike_diff == 0:
                label = _STRADDLE_LABELS.get(directions)
            elif strike_diff <= call.strike * settings.strike_pct_tol:
                label = _STRANGLE_LABELS.get(directions)
            else:
                label = None
            if label is None:
                continue
            if _ratio(call.notional, put.notional) > settings.notional_ratio_tol:
                continue

            hash_input = f"{expiration.isoformat()}_{_num(call.strike)}_{_num(put.strike)}_{call.last_trade_iso}"
            pairs.append(
                _Pair(time_diff, len(pairs), call_idx, put_idx, _assignment(label, hash_input, tier))
            )
    return pairs


def _vertical_pairs(
    signals: Sequence[OptionSignal],
    legs: List[int],
    expiration: date,
    settings: ComboSettings,
) -> List[_Pair]:
    pairs: List[_Pair] = []
    for i in range(len(legs) - 1):
        for j in range(i + 1, len(legs)):
            low, high = signals[legs[i]], signals[legs[j]]
            if low.strike == high.strike:
                continue
            time_diff = _time_diff_minutes(low, high)
            if time_diff is None or time_diff > settings.time_window_min:
                continue
            # Spread legs trade the same contract count, so match on volume.
            if _ratio(low.volume, high.volume) > settings.notional_ratio_tol:
                continue

            if low.direction is BUY and high.direction is SELL:
                side = "bull"
            elif low.direction is SELL and high.direction is BUY:
                side = "bear"
            else:
                continue

            option_type = low.option_type.value
            label = f"{side}{option_type.capitalize()}Vertical"
            hash_input = (
                f"{expiration.isoformat()}_vertical_{option_type}_"
                f"{_num(low.strike)}_{_num(high.strike)}_{low.last_trade_iso}"
            )
            pairs.append(_Pair(time_diff, len(pairs), legs[i], legs[j], _assignment(label, hash_input)))
    return pairs


def _calendar_pairs(
    signals: Sequence[OptionSignal],
    legs: List[int],
    settings: ComboSettings,
) -> List[_Pair]:
    pairs: List[_Pair] = []
    for i in range(len(legs) - 1):
        for j in range(i + 1, len(legs)):
            near, far = signals[legs[i]], signals[legs[j]]
            if near.expiration >= far.expiration:
                continue
            time_diff = _time_diff_minutes(near, far)
            if time_diff is None or time_diff > settings.time_window_min:
                continue
            if _ratio(near.notional, far.notional) > settings.notional_ratio_tol:
                continue

            if near.direction is SELL and far.direction is BUY:
                side = "long"
            elif near.direction is BUY and far.direction is SELL:
                side = "short"
            else:
                continue

            option_type = near.option_type.value
            label = f"{side}Calendar{option_type.capitalize()}"
            hash_input = (
                f"calendar_{option_type}_{_num(near.strike)}_{near.expiration.isoformat()}_"
                f"{far.expiration.isoformat()}_{near.last_trade_iso}"
            )
            pairs.append(_Pair(time_diff, len(pairs), legs[i], legs[j], _assignment(label, hash_input)))
    return pairs


def _take(pairs: List[_Pair], taken: Set[int], assignments: Dict[int, ComboAssignment]) -> None:
    for pair in sorted(pairs, key=lambda p: (p.time_diff, p.order)):
        if pair.first in taken or pair.second in taken:
            continue
        taken.update((pair.first, pair.second))
        assignments[pair.first] = pair.assignment
        assignments[pair.second] = pair.assignment
        logger.debug(
            "Detected %s (tier=%s, time diff %.1f min)",
            pair.assignment.strategy,
            pair.assignment.match_tier,
            pair.time_diff,
        )


def identify_combos(
    signals: Sequence[OptionSignal],
    settings: Optional[ComboSettings] = None,
) -> Dict[int, ComboAssignment]:
    """Pair legs into straddles, strangles, verticals and calendars.

    Per expiry (ascending) straddles/strangles are matched first, then call
    verticals, then put verticals; calendars run last across expiries.
    """

    settings = settings or ComboSettings()
    assignments: Dict[int, ComboAssignment] = {}
    taken: Set[int] = {index for index, signal in enumerate(signals) if signal.combo_id}

    by_expiry: Dict[date, List[int]] = OrderedDict()
    for index, signal in enumerate(signals):
        by_expiry.setdefault(signal.expiration, []).append(index)

    for expiration in sorted(by_expiry):
        indexes = by_expiry[expiration]
        calls = sorted((i for i in indexes if signals[i].option_type is OptionType.CALL), key=lambda i: signals[i].strike)
        puts = sorted((i for i in indexes if signals[i].option_type is OptionType.PUT), key=lambda i: signals[i].strike)

        _take(_straddle_pairs(signals, calls, puts, expiration, settings), taken, assignments)
        _take(_vertical_pairs(signals, calls, expiration, settings), taken, assignments)
        _take(_vertical_pairs(signals, puts, expiration, settings), taken, assignments)

    by_strike: Dict[Tuple[OptionType, float], List[int]] = OrderedDict()
    for index, signal in enumerate(signals):
        by_strike.setdefault((signal.option_type, signal.strike), []).append(index)

    for indexes in by_strike.values():
        ordered = sorted(indexes, key=lambda i: signals[i].expiration)
        _take(_calendar_pairs(signals, ordered, settings), taken, assignments)

    return assignments


def apply_combos(
    signals: Sequence[OptionSignal],
    assignments: Dict[int, ComboAssignment],
) -> List[OptionSignal]:
    """Return copies of ``signals`` with combo fields filled from ``assignments``."""

    updated: List[OptionSignal] = []
    for index, signal in enumerate(signals):
        assignment = assignments.get(index)
        if assignment is None:
            updated.append(signal)
            continue
        updated.append(
            signal.model_copy(
                update={
                    "combo_id": assignment.combo_id,
                    "combo_type": assignment.combo_type,
                    "combo_match_tier": assignment.match_tier,
                    "is_combo_hedge": True,
                }
            )
        )
    return updated


def merge_combo_legs(candidates: Sequence[OptionSignal]) -> List[OptionSignal]:
    """Build the final list: in-band signals plus combo legs from outside the band.

    Duplicates (same :attr:`OptionSignal.key`) are dropped.
    """

    merged: List[OptionSignal] = []
    seen: Set[str] = set()
    for signal in candidates:
        if signal.within_band and signal.key not in seen:
            merged.append(signal)
            seen.add(signal.key)
    for signal in candidates:
        if signal.is_combo_hedge and signal.key not in seen:
            merged.append(signal)
            seen.add(signal.key)
    return merged


_ID_SUFFIX = re.compile(r"-[a-z0-9]+$", re.IGNORECASE)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def strategy_name(combo_type: Optional[str]) -> str:
    """``bullCallVertical-1a2b`` becomes ``Bull Call Vertical``."""

    name = _ID_SUFFIX.sub("", combo_type or "Unknown")
    name = _CAMEL_BOUNDARY.sub(" ", name).replace("-", " ").strip()
    return name[:1].upper() + name[1:]


def risk_profile(strategy: str) -> str:
    lowered = strategy.lower()
    if "bull" in lowered:
        return "Bullish"
    if "bear" in lowered:
        return "Bearish"
    return "Hedge/Neutral"


def summarize_combos(signals: Sequence[OptionSignal]) -> List[ComboSummary]:
    """One summary per ``combo_id`` in first-seen order, with summed leg notional."""

    grouped: Dict[str, List[OptionSignal]] = OrderedDict()
    for signal in signals:
        if signal.combo_id:
            grouped.setdefault(signal.combo_id, []).append(signal)

    summaries: List[ComboSummary] = []
    for combo_id, legs in grouped.items():
        strategy = strategy_name(legs[0].combo_type)
        summaries.append(
            ComboSummary(
                combo_id=combo_id,
                strategy=strategy,
                description=f"{strategy} {legs[0].expiration.isoformat()}",
                notional=sum(leg.notional for leg in legs),
                risk_profile=risk_profile(strategy),
                legs=len(legs),
            )
        )
    return summaries


__all__ = [
    "ComboAssignment",
    "apply_combos",
    "identify_combos",
    "merge_combo_legs",
    "risk_profile",
    "simple_hash",
    "strategy_name",
    "summarize_combos",
]
