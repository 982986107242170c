"""Macro regime snapshot built from the major indices, the dollar and the VIX."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from flowscan.adapters.base import AdapterError, MarketDataAdapter, Quote
from flowscan.cache import Cache, cache_key
from flowscan.models.market import DollarSnapshot, IndexSnapshot, MacroSnapshot, VolatilitySnapshot

from .money_flow import fetch_money_flow_strength
from .technicals import ema, rsi

logger = logging.getLogger(__name__)

NASDAQ = "^IXIC"
SP500 = "^GSPC"
INDEX_SYMBOLS = (NASDAQ, SP500)
DXY_SYMBOL = "DX-Y.NYB"
VIX_SYMBOL = "^VIX"

CACHE_TTL_SECONDS = 300
HISTORY_DAYS = 92
VIX_MOVE_PERCENT = 0.5
MAX_INDEX_SCORE = 6


def index_score(
    price: float,
    change_percent: float,
    ema20: Optional[float],
    ema50: Optional[float],
    rsi14: Optional[float],
    money_flow: float,
) -> int:
    score = 0
    if price and ema20 and price > ema20:
        score += 1
    if price and ema50 and price > ema50:
        score += 1
    if rsi14 is not None and (rsi14 < 30 or rsi14 > 60):
        score += 1
    if money_flow > 0:
        score += 1
    if change_percent > 0.5:
        score += 1
    return min(score, MAX_INDEX_SCORE)


def index_regime(score: int, change_percent: float) -> str:
    if score >= 4:
        return "BULLISH_MOMENTUM" if change_percent >= 0 else "BULLISH_PULLBACK"
    if score >= 2:
        return "NEUTRAL_ACCUMULATION" if change_percent >= 0 else "CHOPPY_RANGE"
    return "BEARISH_PULLBACK"


def dollar_trend(change_percent: float) -> str:
    if change_percent > 0:
        return "UP"
    if change_percent < 0:
        return "DOWN"
    return "FLAT"


def volatility_status(change_percent: float) -> str:
    if change_percent > VIX_MOVE_PERCENT:
        return "RISING"
    if change_percent < -VIX_MOVE_PERCENT:
        return "FALLING"
    return "STABLE"


def overall_regime(
    indices: Dict[str, IndexSnapshot], dxy: Optional[DollarSnapshot], vix: Optional[VolatilitySnapshot]
) -> str:
    nasdaq = indices.get(NASDAQ)
    sp = indices.get(SP500)
    if nasdaq and sp and nasdaq.score > 4 and sp.score > 4:
        return "RISK_ON"
    if dxy and vix and dxy.trend == "UP" and vix.status == "RISING" and nasdaq and nasdaq.score < 2:
        return "RISK_OFF"
    return "CHOPPY"


class MacroMonitor:
    """Builds :class:`MacroSnapshot` objects and caches them in the injected cache."""

    def __init__(self, adapter: MarketDataAdapter, cache: Cache, ttl: float = CACHE_TTL_SECONDS):
        self._adapter = adapter
        self._cache = cache
        self._ttl = ttl

    def _quote(self, symbol: str) -> Optional[Quote]:
        try:
            return self._adapter.get_quote(symbol)
        except AdapterError as exc:
            logger.warning("Macro quote failed for %s: %s", symbol, exc)
            return None

    def _closes(self, symbol: str) -> List[float]:
        try:
            history = self._adapter.get_price_history(symbol, HISTORY_DAYS)
        except (AdapterError, NotImplementedError) as exc:
            logger.warning("Macro history failed for %s: %s", symbol, exc)
            return []
        if history.empty or "Close" not in history.columns:
            return []
        return [float(value) for value in history["Close"].dropna().tolist()]

    def build_index(self, symbol: str) -> IndexSnapshot:
        quote = self._quote(symbol)
        price = quote.price if quote else 0.0
        change = (quote.change_percent or 0.0) if quote else 0.0
        closes = self._closes(symbol)
        ema20, ema50, rsi14 = ema(closes, 20), ema(closes, 50), rsi(closes, 14)
        flow = fetch_money_flow_strength(self._adapter, symbol, 7)
        score = index_score(price, change, ema20, ema50, rsi14, flow)
        return IndexSnapshot(
            symbol=symbol,
            price=price,
            change_percent=change,
            ema20=ema20,
            ema50=ema50,
            rsi14=rsi14,
            money_flow=flow,
            score=score,
            regime=index_regime(score, change),
        )

    def snapshot(self, force: bool = False) -> MacroSnapshot:
        key = cache_key("macro")
        if not force:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        indices = {symbol: self.build_index(symbol) for symbol in INDEX_SYMBOLS}
        dxy_quote = self._quote(DXY_SYMBOL)
        vix_quote = self._quote(VIX_SYMBOL)
        dxy = None
        if dxy_quote is not None:
            change = dxy_quote.change_percent or 0.0
            dxy = DollarSnapshot(
                symbol=DXY_SYMBOL, price=dxy_quote.price, change_percent=change, trend=dollar_trend(change)
            )
        vix = None
        if vix_quote is not None:
            change = vix_quote.change_percent or 0.0
            vix = VolatilitySnapshot(
                symbol=VIX_SYMBOL, price=vix_quote.price, change_percent=change, status=volatility_status(change)
            )

        snapshot = MacroSnapshot(indices=indices, dxy=dxy, vix=vix, overall_regime=overall_regime(indices, dxy, vix))
        self._cache.set(key, snapshot, self._ttl)
        logger.info("Macro regime %s", snapshot.overall_regime)
        return snapshot


__all__ = [
    "MacroMonitor",
    "dollar_trend",
    "index_regime",
    "index_score",
    "overall_regime",
    "volatility_status",
]
