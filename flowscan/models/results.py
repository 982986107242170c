from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .signal import OptionSignal, SpotConfirmation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SentimentSnapshot(BaseModel):
    """Point-in-time notional aggregate for one symbol."""

    symbol: str
    bullish_notional: float = 0.0
    bearish_notional: float = 0.0
    total_notional: float = 0.0
    put_notional: float = 0.0
    call_notional: float = 0.0
    put_call_ratio: float = 0.0
    ask_bias: float = 0.0
    sentiment: float = 0.0


class ExtendedSentiment(SentimentSnapshot):
    """Base sentiment plus time-decayed, hedge-adjusted and window aggregates."""

    current_price: float = 0.0

    bullish_notional_decayed: float = 0.0
    bearish_notional_decayed: float = 0.0
    total_notional_decayed: float = 0.0
    put_notional_decayed: float = 0.0
    call_notional_decayed: float = 0.0
    put_call_ratio_decayed: Optional[float] = None
    ask_bias_decayed: float = 0.0
    sentiment_decayed: float = 0.0

    bullish_notional_decayed_adj: float = 0.0
    bearish_notional_decayed_adj: float = 0.0
    total_notional_decayed_adj: float = 0.0
    put_notional_decayed_adj: float = 0.0
    call_notional_decayed_adj: float = 0.0
    put_call_ratio_decayed_adj: Optional[float] = None
    ask_bias_decayed_adj: float = 0.0
    sentiment_decayed_adj: float = 0.0

    window_bullish_notional_raw: float = 0.0
    window_bearish_notional_raw: float = 0.0
    window_bullish_over_threshold: bool = False
    window_bullish_threshold_used: float = 0.0

    hedge_signals_count: int = 0
    hedge_notional_share: float = 0.0
    combo_hedge_share: float = 0.0

    window_mins: float = 0.0
    half_life_mins: float = 0.0
    aggregation_policy: str = "standard"
    last_trade_min_ago: Optional[float] = None
    money_flow_strength: float = 0.0
    avg_iv: float = 0.0
    institutional_share: float = 0.0
    days_to_earnings: Optional[int] = None
    spot_confirmation: Optional[SpotConfirmation] = None


class ComboSummary(BaseModel):
    combo_id: str
    strategy: str
    description: str
    notional: float
    risk_profile: Literal["Bullish", "Bearish", "Hedge/Neutral"]
    legs: int


class ActivityDaySignal(BaseModel):
    date: date
    signal: Literal["bullish", "bearish", "neutral", "exit"]
    description: str
    strength: float


class OptionsActivity(BaseModel):
    """Day-by-day read of chain activity with put/call and IV trends."""

    signals: List[ActivityDaySignal] = Field(default_factory=list)
    trend: Literal["bullish", "bearish", "neutral", "mixed"] = "neutral"
    pcr_trend: Literal["increasing", "decreasing", "stable"] = "stable"
    iv_trend: Literal["increasing", "decreasing", "stable"] = "stable"
    recent_activity: str = ""


class ScanResult(BaseModel):
    """Everything produced by one options scan of a symbol."""

    symbol: str
    market: Literal["US", "CN"] = "US"
    price: float
    market_cap: Optional[float] = None
    market_state: Optional[str] = None
    money_flow_strength: float = 0.0
    days_to_earnings: Optional[int] = None
    fresh_window_mins: int = 0
    expirations: List[date] = Field(default_factory=list)
    signals: List[OptionSignal] = Field(default_factory=list)
    combos: List[ComboSummary] = Field(default_factory=list)
    sentiment: SentimentSnapshot
    extended: ExtendedSentiment
    activity: Optional[OptionsActivity] = None
    rejections: Dict[str, int] = Field(default_factory=dict)
    generated_at: datetime = Field(default_factory=_utcnow)


class ScanError(BaseModel):
    symbol: str
    reason: str


__all__ = [
    "ActivityDaySignal",
    "ComboSummary",
    "ExtendedSentiment",
    "OptionsActivity",
    "ScanError",
    "ScanResult",
    "SentimentSnapshot",
]
