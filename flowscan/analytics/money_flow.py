from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from flowscan.adapters.base import AdapterError, MarketDataAdapter

logger = logging.getLogger(__name__)

HISTORY_PADDING_DAYS = 10


def money_flow_strength(history: pd.DataFrame, period: int = 7) -> float:
    """Net typical-price money flow over the last ``period`` sessions, in [-1, 1].

    A session's flow counts as positive when its typical price (H+L+C)/3 rose
    from the prior session and negative when it fell. Returns 0 when there
    are fewer than ``period + 1`` bars or no flow at all.
    """

    required = {"High", "Low", "Close", "Volume"}
    if history is None or history.empty or not required.issubset(history.columns):
        return 0.0
    if len(history) < period + 1:
        return 0.0

    recent = history.tail(period + 1)
    typical = (
        pd.to_numeric(recent["High"], errors="coerce")
        + pd.to_numeric(recent["Low"], errors="coerce")
        + pd.to_numeric(recent["Close"], errors="coerce")
    ) / 3.0
    volume = pd.to_numeric(recent["Volume"], errors="coerce").fillna(0.0)
    change = typical.diff()
    flow = typical * volume

    positive = float(flow[change > 0].sum())
    negative = float(flow[change < 0].sum())
    total = positive + negative
    if total == 0 or not np.isfinite(total):
        return 0.0
    return float(np.clip((positive - negative) / total, -1.0, 1.0))


def fetch_money_flow_strength(adapter: MarketDataAdapter, symbol: str, period: int = 7) -> float:
    try:
        history = adapter.get_price_history(symbol, period + HISTORY_PADDING_DAYS)
    except (AdapterError, NotImplementedError) as exc:
        logger.warning("Money flow unavailable for %s: %s", symbol, exc)
        return 0.0
    if len(history) < period + 1:
        logger.warning("Not enough price history for %s money flow (%d bars)", symbol, len(history))
    return money_flow_strength(history, period)


__all__ = ["fetch_money_flow_strength", "money_flow_strength"]
