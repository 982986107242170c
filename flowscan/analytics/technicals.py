from __future__ import annotations

from typing import Optional, Sequence


def ema(values: Sequence[float], period: int) -> Optional[float]:
    """Exponential moving average seeded with the simple average of the first ``period`` values."""

    if len(values) < period:
        return None
    k = 2.0 / (period + 1)
    current = sum(values[:period]) / period
    for value in values[period:]:
        current = value * k + current * (1 - k)
    return current


def rsi(values: Sequence[float], period: int = 14) -> Optional[float]:
    """Wilder-smoothed relative strength index."""

    if len(values) <= period:
        return None

    gains = losses = 0.0
    for previous, current in zip(values[: period], values[1 : period + 1]):
        delta = current - previous
        if delta >= 0:
            gains += delta
        else:
            losses -= delta
    avg_gain = gains / period
    avg_loss = losses / period

    for previous, current in zip(values[period:], values[period + 1 :]):
        delta = current - previous
        avg_gain = (avg_gain * (period - 1) + max(delta, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-delta, 0.0)) / period

    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


__all__ = ["ema", "rsi"]
