from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScoreBreakdown(BaseModel):
    scorer: str
    weight: float
    raw_score: float
    weighted_score: float
    reasons: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class ValueScore(BaseModel):
    """Fundamental value score on a 0-6 scale."""

    symbol: str
    name: Optional[str] = None
    price: float = 0.0
    sector: Optional[str] = None
    score: float
    metrics: Dict[str, Optional[float]] = Field(default_factory=dict)
    reasons: List[str] = Field(default_factory=list)
    breakdowns: List[ScoreBreakdown] = Field(default_factory=list)
    thresholds: Dict[str, Dict[str, float]] = Field(default_factory=dict)


class MoverView(BaseModel):
    symbol: str
    name: Optional[str] = None
    price: float
    change_percent: float
    volume: float = 0.0
    market: Literal["US", "CN"] = "US"
    value_score: Optional[float] = None
    sector: Optional[str] = None
    metrics: Dict[str, Optional[float]] = Field(default_factory=dict)
    reasons: List[str] = Field(default_factory=list)


class SectorStat(BaseModel):
    date: date
    sector: str
    stock_count: int
    avg_change: float
    total_volume: float
    leader_symbol: str
    leader_change: float
    rank: int


class SectorTrendPoint(BaseModel):
    date: date
    rank: int
    avg_change: float
    stock_count: int
    total_volume: float


class SectorTrend(BaseModel):
    """Latest standing of a sector plus momentum and breadth read-outs."""

    sector: str
    current_rank: int
    avg_change: float = 0.0
    total_volume: float = 0.0
    stock_count: int = 0
    rank_delta: Optional[int] = None
    consecutive_top3: int = 0
    volume_change_rate: Optional[float] = None
    divergence: bool = False
    leader_symbol: Optional[str] = None
    leader_change: Optional[float] = None
    leader_gap: Optional[float] = None
    is_hot: bool = False
    history: List[SectorTrendPoint] = Field(default_factory=list)


class TrendSignal(BaseModel):
    type: Literal[
        "momentum_decay",
        "volume_divergence",
        "rank_breakout",
        "emerging_sector",
        "sector_exhaustion",
    ]
    sector: str
    severity: Literal["alert", "warning", "info"]
    message: str


class EnhancedSectorTrends(BaseModel):
    days: int
    sectors: List[SectorTrend] = Field(default_factory=list)
    signals: List[TrendSignal] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utcnow)


class IndexSnapshot(BaseModel):
    symbol: str
    price: float
    change_percent: float
    ema20: Optional[float] = None
    ema50: Optional[float] = None
    rsi14: Optional[float] = None
    money_flow: float = 0.0
    score: int = 0
    regime: Literal[
        "BULLISH_MOMENTUM",
        "BULLISH_PULLBACK",
        "NEUTRAL_ACCUMULATION",
        "CHOPPY_RANGE",
        "BEARISH_PULLBACK",
    ] = "CHOPPY_RANGE"


class DollarSnapshot(BaseModel):
    symbol: str
    price: float
    change_percent: float
    trend: Literal["UP", "DOWN", "FLAT"] = "FLAT"


class VolatilitySnapshot(BaseModel):
    symbol: str
    price: float
    change_percent: float
    status: Literal["RISING", "FALLING", "STABLE"] = "STABLE"


class MacroSnapshot(BaseModel):
    indices: Dict[str, IndexSnapshot] = Field(default_factory=dict)
    dxy: Optional[DollarSnapshot] = None
    vix: Optional[VolatilitySnapshot] = None
    overall_regime: Literal["RISK_ON", "RISK_OFF", "CHOPPY"] = "CHOPPY"
    generated_at: datetime = Field(default_factory=_utcnow)


__all__ = [
    "DollarSnapshot",
    "EnhancedSectorTrends",
    "IndexSnapshot",
    "MacroSnapshot",
    "MoverView",
    "ScoreBreakdown",
    "SectorStat",
    "SectorTrend",
    "SectorTrendPoint",
    "TrendSignal",
    "ValueScore",
    "VolatilitySnapshot",
]
