from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional

from flowscan.adapters.base import AdapterError, MarketDataAdapter

logger = logging.getLogger(__name__)


def days_to_earnings(adapter: MarketDataAdapter, symbol: str, today: Optional[date] = None) -> Optional[int]:
    """Whole days until the next earnings date, or ``None`` when unknown or already past."""

    today = today or datetime.now(timezone.utc).date()
    try:
        earnings = adapter.get_earnings_date(symbol)
    except AdapterError as exc:
        logger.debug("Earnings lookup failed for %s: %s", symbol, exc)
        return None
    if earnings is None:
        return None
    days = (earnings - today).days
    return days if days >= 0 else None


__all__ = ["days_to_earnings"]
