"""Day-by-day options activity read from the contracts of already-fetched chains.

Each contract is bucketed by the day of its last trade. High-volume days where
one side dominates and open interest grows are flagged as positioning; days
where open interest drops are flagged as exits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import pandas as pd

from flowscan.models.results import ActivityDaySignal, OptionsActivity

logger = logging.getLogger(__name__)

MIN_DAYS = 5
TREND_WINDOW = 5
VOLUME_PERCENTILE = 0.8
MIN_STRENGTH = 0.3

DAILY_COLUMNS = [
    "date",
    "total_volume",
    "call_volume",
    "put_volume",
    "call_open_interest",
    "put_open_interest",
    "put_call_ratio",
    "weighted_iv",
]


def _numeric(frame: pd.DataFrame, column: str) -> pd.Series:
    if column not in frame.columns:
        return pd.Series(0.0, index=frame.index)
    return pd.to_numeric(frame[column], errors="coerce").fillna(0.0)


def daily_activity(contracts: pd.DataFrame, days: int = 30, now: Optional[datetime] = None) -> pd.DataFrame:
    """Aggregate contracts per last-trade day, oldest first, excluding today."""

    now = now or datetime.now(timezone.utc)
    if contracts.empty or "lastTradeDate" not in contracts.columns:
        return pd.DataFrame(columns=DAILY_COLUMNS)

    frame = contracts.copy()
    frame["traded_at"] = pd.to_datetime(frame["lastTradeDate"], utc=True, errors="coerce")
    start = pd.Timestamp(now) - pd.Timedelta(days=days)
    frame = frame[frame["traded_at"].notna()]
    frame = frame[(frame["traded_at"] >= start) & (frame["traded_at"] <= pd.Timestamp(now))]
    if frame.empty:
        return pd.DataFrame(columns=DAILY_COLUMNS)

    frame["date"] = frame["traded_at"].dt.date
    for column in ("volume", "openInterest", "impliedVolatility"):
        frame[column] = _numeric(frame, column)

    rows = []
    for day, group in frame.groupby("date", sort=True):
        calls = group[group["type"] == "call"]
        puts = group[group["type"] == "put"]
        call_volume = float(calls["volume"].sum())
        put_volume = float(puts["volume"].sum())
        with_iv = group[(group["impliedVolatility"] > 0) & (group["volume"] > 0)]
        iv_volume = float(with_iv["volume"].sum())
        rows.append(
            {
                "date": day,
                "total_volume": call_volume + put_volume,
                "call_volume": call_volume,
                "put_volume": put_volume,
                "call_open_interest": float(calls["openInterest"].mean()) if len(calls) else 0.0,
                "put_open_interest": float(puts["openInterest"].mean()) if len(puts) else 0.0,
                "put_call_ratio": put_volume / call_volume if call_volume > 0 else 0.0,
                "weighted_iv": (
                    float((with_iv["impliedVolatility"] * with_iv["volume"]).sum()) / iv_volume
                    if iv_volume > 0
                    else 0.0
                ),
            }
        )

    daily = pd.DataFrame(rows, columns=DAILY_COLUMNS)
    return daily[daily["date"] != now.date()].reset_index(drop=True)


def _percentile(values: Sequence[float], percentile: float) -> float:
    ordered = sorted(values)
    index = int(len(ordered) * percentile)
    return ordered[max(0, min(len(ordered) - 1, index))]


def _trend(recent: Sequence[float], earlier: Sequence[float]) -> str:
    recent_avg = sum(recent) / len(recent)
    earlier_avg = sum(earlier) / len(earlier) if earlier else recent_avg
    if recent_avg > earlier_avg * 1.1:
        return "increasing"
    if recent_avg < earlier_avg * 0.9:
        return "decreasing"
    return "stable"


def _oi_change(current: float, previous: float) -> float:
    return (current - previous) / (previous or 1.0)


def analyze_activity(daily: pd.DataFrame) -> OptionsActivity:
    if len(daily) < MIN_DAYS:
        return OptionsActivity(recent_activity="Not enough history to analyse")

    records = daily.to_dict("records")
    volumes = [row["total_volume"] for row in records]
    threshold = _percentile(volumes, VOLUME_PERCENTILE)

    pcr = [row["put_call_ratio"] for row in records]
    ivs = [row["weighted_iv"] for row in records]
    pcr_trend = _trend(pcr[-TREND_WINDOW:], pcr[-2 * TREND_WINDOW : -TREND_WINDOW])
    iv_trend = _trend(ivs[-TREND_WINDOW:], ivs[-2 * TREND_WINDOW : -TREND_WINDOW])

    signals: List[ActivityDaySignal] = []
    for previous, current in zip(records, records[1:]):
        if current["total_volume"] <= threshold:
            continue
        volume_boost = (current["total_volume"] / threshold if threshold > 0 else 1.0) * 0.2
        iv_up = current["weighted_iv"] > previous["weighted_iv"] * 1.05
        call_change = _oi_change(current["call_open_interest"], previous["call_open_interest"])
        put_change = _oi_change(current["put_open_interest"], previous["put_open_interest"])
        iv_note = ", IV rising" if iv_up else ""

        if current["call_volume"] > current["put_volume"] * 2 and call_change > 0.05:
            kind = "bullish"
            description = f"Heavy call opening{iv_note}"
            strength = min(1.0, call_change * 5 + volume_boost + (0.2 if iv_up else 0.0))
        elif current["put_volume"] > current["call_volume"] * 2 and put_change > 0.05:
            kind = "bearish"
            description = f"Heavy put opening{iv_note}"
            strength = min(1.0, put_change * 5 + volume_boost + (0.2 if iv_up else 0.0))
        elif call_change < -0.03 or put_change < -0.03:
            kind = "exit"
            description = "High volume with falling open interest, positions being closed"
            strength = min(1.0, abs(call_change + put_change) * 3 + volume_boost)
        else:
            continue

        if strength > MIN_STRENGTH:
            signals.append(
                ActivityDaySignal(date=current["date"], signal=kind, description=description, strength=strength)
            )

    trend = "neutral"
    recent = "No notable positioning recently"
    if signals:
        last = signals[-1]
        trend = "neutral" if last.signal == "exit" else last.signal
        recent = last.description
    elif pcr_trend == "increasing":
        trend = "bearish"
        recent = "Put/call ratio rising" + (" with IV climbing" if iv_trend == "increasing" else "")
    elif pcr_trend == "decreasing":
        trend = "bullish"
        recent = "Put/call ratio falling" + (" with IV easing" if iv_trend == "decreasing" else "")

    return OptionsActivity(
        signals=signals,
        trend=trend,
        pcr_trend=pcr_trend,
        iv_trend=iv_trend,
        recent_activity=recent,
    )


def analyze_chain_activity(
    frames: Sequence[pd.DataFrame], days: int = 30, now: Optional[datetime] = None
) -> OptionsActivity:
    """Analyse activity across chain frames; empty input reads as neutral."""

    frames = [frame for frame in frames if frame is not None and not frame.empty]
    if not frames:
        return analyze_activity(pd.DataFrame(columns=DAILY_COLUMNS))
    daily = daily_activity(pd.concat(frames, ignore_index=True), days=days, now=now)
    logger.debug("Activity analysis over %d trading days", len(daily))
    return analyze_activity(daily)


__all__ = ["analyze_activity", "analyze_chain_activity", "daily_activity"]
