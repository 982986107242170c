"""Market detection and the China seed universe."""

from __future__ import annotations

import logging
from typing import List, Literal

from flowscan.adapters.base import MarketDataAdapter, MarketMover

logger = logging.getLogger(__name__)

Market = Literal["US", "CN"]

CN_SUFFIXES = (".SS", ".SZ")

# Large caps on the Shanghai and Shenzhen exchanges used in place of a screener.
CHINA_SEEDS: List[str] = [
    "600519.SS",
    "601318.SS",
    "600036.SS",
    "601398.SS",
    "600900.SS",
    "601012.SS",
    "600276.SS",
    "601888.SS",
    "000858.SZ",
    "000333.SZ",
    "300750.SZ",
    "002594.SZ",
    "000001.SZ",
    "002415.SZ",
    "300059.SZ",
]


def detect_market(symbol: str) -> Market:
    return "CN" if symbol.strip().upper().endswith(CN_SUFFIXES) else "US"


def strip_market_suffix(symbol: str) -> str:
    upper = symbol.strip().upper()
    for suffix in CN_SUFFIXES:
        if upper.endswith(suffix):
            return upper[: -len(suffix)]
    return upper


def get_china_movers(adapter: MarketDataAdapter, limit: int = 20) -> List[MarketMover]:
    """Quote the seed list and return it ordered by absolute daily change."""

    movers: List[MarketMover] = []
    for quote in adapter.get_quotes(CHINA_SEEDS):
        movers.append(
            MarketMover(
                symbol=quote.symbol,
                name=quote.name,
                price=quote.price,
                change_percent=quote.change_percent or 0.0,
                volume=quote.volume or 0.0,
            )
        )
    movers.sort(key=lambda mover: abs(mover.change_percent), reverse=True)
    logger.debug("Built %d China movers from %d seeds", len(movers), len(CHINA_SEEDS))
    return movers[:limit]


__all__ = ["CHINA_SEEDS", "Market", "detect_market", "get_china_movers", "strip_market_suffix"]
