from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OptionType(str, Enum):
    CALL = "call"
    PUT = "put"


class TradeDirection(str, Enum):
    BUY = "buy"
    SELL = "sell"
    NEUTRAL = "neutral"


class TraderType(str, Enum):
    INSTITUTIONAL = "institutional"
    RETAIL = "retail"
    MIXED = "mixed"


class SpotConfirmation(str, Enum):
    STRONG = "strong"
    WEAK = "weak"
    CONTRADICTION = "contradiction"


class TenorBucket(str, Enum):
    ULTRA_SHORT = "ultraShort"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    ULTRA_LONG = "ultraLong"


class OptionSignal(BaseModel):
    """A classified option contract.

    Instances are frozen; pipeline stages return updated copies through
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    symbol: str
    option_type: OptionType
    strike: float
    expiration: date
    last_trade: Optional[datetime] = None
    age_minutes: Optional[float] = None

    volume: float
    open_interest: float = 0.0
    last: float
    bid: float
    ask: float
    mid: float
    spread_pct: float
    notional: float
    implied_volatility: float = 0.0

    pos: float
    direction: TradeDirection
    direction_confidence: float
    trader_type: TraderType

    underlying_price: float
    moneyness: float
    days_to_expiry: int
    market_cap: float = 0.0
    notional_to_market_cap: float = 0.0

    tenor_bucket: TenorBucket
    is_deep_otm_put: bool = False
    is_short_term_spec: bool = False
    is_long_term_hedge: bool = False
    is_large_otm_call: bool = False
    within_band: bool = True

    combo_id: Optional[str] = None
    combo_type: Optional[str] = None
    combo_match_tier: Optional[int] = None
    is_combo_hedge: bool = False

    hedge_score: float = 0.0
    hedge_tags: List[str] = Field(default_factory=list)

    spot_confirmation: Optional[SpotConfirmation] = None
    days_to_earnings: Optional[int] = None
    signal_quality: float = 0.0

    @property
    def last_trade_iso(self) -> str:
        return self.last_trade.isoformat() if self.last_trade else ""

    @property
    def key(self) -> str:
        """Identity used to de-duplicate signals: type, strike, expiry and trade time."""

        return f"{self.option_type.value}|{self.strike}|{self.expiration.isoformat()}|{self.last_trade_iso}"

    @property
    def is_bullish(self) -> bool:
        if self.option_type is OptionType.CALL:
            return self.direction is TradeDirection.BUY
        return self.direction is TradeDirection.SELL

    @property
    def is_bearish(self) -> bool:
        if self.option_type is OptionType.CALL:
            return self.direction is TradeDirection.SELL
        return self.direction is TradeDirection.BUY


__all__ = [
    "OptionSignal",
    "OptionType",
    "SpotConfirmation",
    "TenorBucket",
    "TradeDirection",
    "TraderType",
]
