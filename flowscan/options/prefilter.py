"""Cheap quote-based screen that narrows a large universe before deep scans."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from flowscan.adapters.base import AdapterError, MarketDataAdapter
from flowscan.config.loader import PrefilterSettings

from .earnings import days_to_earnings

logger = logging.getLogger(__name__)

EARNINGS_CHECK_LIMIT = 20


@dataclass(frozen=True)
class PrefilterHit:
    symbol: str
    reason: str
    volume: Optional[float] = None
    change_percent: Optional[float] = None
    days_to_earnings: Optional[int] = None


def prefilter_details(
    symbols: Sequence[str],
    adapter: MarketDataAdapter,
    settings: PrefilterSettings | None = None,
) -> List[PrefilterHit]:
    """Select symbols by forced inclusion, volume, daily move, then nearby earnings.

    Failed quote batches are logged and skipped.
    """

    settings = settings or PrefilterSettings()
    always = [symbol.upper() for symbol in settings.always_include]
    hits: List[PrefilterHit] = [PrefilterHit(symbol=symbol, reason="alwaysInclude") for symbol in always]
    always_set = set(always)
    remaining = [symbol.upper() for symbol in symbols if symbol.upper() not in always_set]

    failed_batches = 0
    for start in range(0, len(remaining), settings.batch_size):
        batch = remaining[start : start + settings.batch_size]
        try:
            quotes = adapter.get_quotes(batch)
        except AdapterError as exc:
            failed_batches += 1
            logger.warning("Prefilter quote batch %d-%d failed: %s", start, start + len(batch), exc)
            quotes = []

        for quote in quotes:
            volume = quote.volume or 0.0
            change = abs(quote.change_percent or 0.0)
            if volume >= settings.min_volume:
                hits.append(PrefilterHit(quote.symbol.upper(), "highVolume", volume, change))
            elif change >= settings.min_change_percent:
                hits.append(PrefilterHit(quote.symbol.upper(), "highVolatility", volume, change))

        if len(hits) >= settings.max_symbols:
            logger.debug("Prefilter stopping early with %d candidates", len(hits))
            break

    if settings.earnings_within_days > 0 and len(hits) < settings.max_symbols:
        chosen = {hit.symbol for hit in hits}
        to_check = [symbol for symbol in remaining if symbol not in chosen]
        to_check = to_check[: settings.max_symbols - len(hits)][:EARNINGS_CHECK_LIMIT]
        for symbol in to_check:
            days = days_to_earnings(adapter, symbol)
            if days is not None and days <= settings.earnings_within_days:
                hits.append(PrefilterHit(symbol, "nearEarnings", days_to_earnings=days))

    seen = set()
    unique: List[PrefilterHit] = []
    for hit in hits:
        if hit.symbol not in seen:
            seen.add(hit.symbol)
            unique.append(hit)
    unique = unique[: settings.max_symbols]

    logger.info(
        "Prefilter kept %d of %d symbols (%d failed batches)", len(unique), len(symbols), failed_batches
    )
    return unique


def prefilter_symbols(
    symbols: Sequence[str],
    adapter: MarketDataAdapter,
    settings: PrefilterSettings | None = None,
) -> List[str]:
    return [hit.symbol for hit in prefilter_details(symbols, adapter, settings)]


__all__ = ["PrefilterHit", "prefilter_details", "prefilter_symbols"]
