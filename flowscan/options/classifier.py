"""Contract filter and classifier.

Turns raw chain rows into :class:`OptionSignal` instances. A contract must
clear three gates (liquidity, freshness and volume/OI ratio) to become a
*candidate*; candidates inside the OTM band also form the *primary* set.
Out-of-band candidates are kept so the combo detector can still pair them.
"""

from __future__ import annotations

import logging
import math
import numbers
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from flowscan.config.loader import ScanSettings
from flowscan.models.signal import OptionSignal, OptionType, TenorBucket, TradeDirection, TraderType

logger = logging.getLogger(__name__)

ASK_SIDE_POS = 0.66
MIN_HALF_SPREAD = 0.01
SPREAD_PENALTY_CUT = 0.15
NEUTRAL_POS_CUT = 0.3
NEUTRAL_CONFIDENCE_CUT = 0.25
INSTITUTIONAL_CONTRACTS = 500
INSTITUTIONAL_NOTIONAL = 2_000_000
RETAIL_CONTRACTS = 20
RETAIL_NOTIONAL = 100_000
LARGE_OTM_CALL_MONEYNESS = 1.05
LARGE_OTM_CALL_MAX_DTE = 45


@dataclass(frozen=True)
class ChainContext:
    """Per-symbol inputs shared by every contract in a scan."""

    symbol: str
    underlying_price: float
    market_cap: float = 0.0
    fresh_window_minutes: float = 60
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class RejectionStats:
    total: int = 0
    invalid_fields: int = 0
    invalid_price: int = 0
    invalid_mid: int = 0
    below_threshold: int = 0
    ratio_low: int = 0
    stale: int = 0
    outside_band: int = 0
    accepted: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ChainClassification:
    signals: List[OptionSignal] = field(default_factory=list)
    candidates: List[OptionSignal] = field(default_factory=list)
    stats: RejectionStats = field(default_factory=RejectionStats)


def _to_float(value: Any) -> Optional[float]:
    if value is None or value is pd.NA:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def compute_mid(bid: float, ask: float, last: float) -> float:
    """Return the bid/ask midpoint, falling back to last, bid then ask."""

    mid = (bid + ask) / 2
    if not math.isfinite(mid) or mid <= 0:
        mid = last if last > 0 else bid if bid > 0 else ask
    return mid


def compute_pos(last: float, bid: float, ask: float) -> float:
    """Where the last trade printed inside the spread: 0 at the bid, 1 at the ask."""

    return (last - bid) / max(ask - bid, MIN_HALF_SPREAD)


def classify_direction(
    last: float,
    bid: float,
    ask: float,
    volume: float,
    open_interest: float,
    spread_pct: float,
) -> Tuple[TradeDirection, float]:
    """Infer whether the print was a buy or a sell, with a confidence in [0, 1]."""

    mid = (bid + ask) / 2
    half_spread = (ask - bid) / 2 or MIN_HALF_SPREAD
    pos_score = max(-1.0, min(1.0, (last - mid) / half_spread)) if mid > 0 else 0.0

    vol_oi_ratio = volume / open_interest if open_interest > 0 else 2.0
    is_new_position = vol_oi_ratio > 1

    spread_penalty = min(1.0, spread_pct / SPREAD_PENALTY_CUT)
    confidence = max(0.0, 1 - spread_penalty * 0.6)

    # A print exactly on the bid or ask is ambiguous.
    if last == ask or last == bid:
        confidence *= 0.5

    if is_new_position and abs(pos_score) > 0.5:
        confidence = min(1.0, confidence * 1.2)

    if confidence < NEUTRAL_CONFIDENCE_CUT or abs(pos_score) < NEUTRAL_POS_CUT:
        return TradeDirection.NEUTRAL, confidence * 0.5

    direction = TradeDirection.BUY if pos_score > 0 else TradeDirection.SELL
    return direction, confidence * (0.5 + 0.5 * abs(pos_score))


def classify_trader_type(notional: float, underlying_price: float) -> TraderType:
    """Size the trade relative to the share price rather than in fixed dollars."""

    contract_value = underlying_price * 100
    equivalent_contracts = notional / contract_value if contract_value > 0 else 0.0

    if equivalent_contracts >= INSTITUTIONAL_CONTRACTS or notional >= INSTITUTIONAL_NOTIONAL:
        return TraderType.INSTITUTIONAL
    if equivalent_contracts < RETAIL_CONTRACTS and notional < RETAIL_NOTIONAL:
        return TraderType.RETAIL
    return TraderType.MIXED


def tenor_bucket(days_to_expiry: int) -> TenorBucket:
    if days_to_expiry <= 7:
        return TenorBucket.ULTRA_SHORT
    if days_to_expiry <= 30:
        return TenorBucket.SHORT
    if days_to_expiry <= 90:
        return TenorBucket.MEDIUM
    if days_to_expiry <= 180:
        return TenorBucket.LONG
    return TenorBucket.ULTRA_LONG


def parse_last_trade(raw: Any) -> Optional[datetime]:
    """Normalise a last-trade value to an aware UTC datetime.

    Numbers above 1e12 are epoch milliseconds, smaller numbers epoch seconds.
    """

    if raw is None or raw is pd.NA or raw == "":
        return None
    try:
        if isinstance(raw, numbers.Real) and not isinstance(raw, bool):
            if not math.isfinite(raw):
                return None
            seconds = raw / 1000 if raw > 1e12 else raw
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        stamp = pd.Timestamp(raw)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
    if pd.isna(stamp):
        return None
    if stamp.tzinfo is None:
        stamp = stamp.tz_localize(timezone.utc)
    return stamp.tz_convert(timezone.utc).to_pydatetime()


def minutes_since(moment: Optional[datetime], now: datetime) -> float:
    if moment is None:
        return math.inf
    return (now - moment).total_seconds() / 60


def days_to_expiry(expiration: date, now: datetime) -> int:
    expiry_dt = datetime(expiration.year, expiration.month, expiration.day, tzinfo=timezone.utc)
    return math.ceil((expiry_dt - now).total_seconds() / 86400)


def _parse_expiration(raw: Any) -> Optional[date]:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        stamp = pd.Timestamp(raw)
    except (TypeError, ValueError):
        return None
    return None if pd.isna(stamp) else stamp.date()


def classify_contract(
    row: Mapping[str, Any],
    option_type: OptionType,
    expiration: date,
    context: ChainContext,
    settings: ScanSettings,
    stats: Optional[RejectionStats] = None,
) -> Optional[OptionSignal]:
    """Classify one chain row; returns ``None`` when the contract fails a gate."""

    stats = stats if stats is not None else RejectionStats()
    stats.total += 1
    rmp = context.underlying_price

    strike = _to_float(row.get("strike"))
    bid = _to_float(row.get("bid"))
    ask = _to_float(row.get("ask"))
    last = _to_float(row.get("lastPrice"))
    volume = _to_float(row.get("volume"))
    if None in (strike, bid, ask, last, volume):
        stats.invalid_fields += 1
        return None
    open_interest = _to_float(row.get("openInterest")) or 0.0
    iv = _to_float(row.get("impliedVolatility")) or 0.0

    if option_type is OptionType.CALL and not rmp > 0:
        stats.invalid_price += 1
        return None

    within_band = True
    moneyness = 0.0
    if rmp > 0:
        moneyness = strike / rmp
        if option_type is OptionType.CALL:
            within_band = moneyness >= settings.call_otm_min and strike <= rmp * settings.call_band_max
        else:
            within_band = (
                moneyness <= settings.put_otm_max and strike >= rmp * settings.effective_put_band_min
            )

    mid = compute_mid(bid, ask, last)
    if not math.isfinite(mid) or mid <= 0:
        stats.invalid_mid += 1
        return None

    spread_pct = (ask - bid) / mid
    notional = volume * mid * 100

    ratio = volume / open_interest if open_interest > 0 else None
    if ratio is None:
        liquid = volume >= settings.min_volume or notional >= settings.min_notional_no_ratio
    else:
        liquid = volume >= settings.min_volume or notional >= settings.min_notional
    if not liquid:
        stats.below_threshold += 1
        return None
    if ratio is not None and ratio < settings.min_ratio:
        stats.ratio_low += 1
        return None

    last_trade = parse_last_trade(row.get("lastTradeDate"))
    age = minutes_since(last_trade, context.now)
    if not age <= context.fresh_window_minutes:
        stats.stale += 1
        return None

    direction, confidence = classify_direction(last, bid, ask, volume, open_interest, spread_pct)
    dte = days_to_expiry(expiration, context.now)

    is_large_otm_call = (
        option_type is OptionType.CALL
        and moneyness >= LARGE_OTM_CALL_MONEYNESS
        and direction is TradeDirection.BUY
        and notional >= settings.large_otm_call_threshold
        and dte <= LARGE_OTM_CALL_MAX_DTE
    )

    if not within_band:
        stats.outside_band += 1
    else:
        stats.accepted += 1

    return OptionSignal(
        symbol=context.symbol,
        option_type=option_type,
        strike=strike,
        expiration=expiration,
        last_trade=last_trade,
        age_minutes=age,
        volume=volume,
        open_interest=open_interest,
        last=last,
        bid=bid,
        ask=ask,
        mid=mid,
        spread_pct=spread_pct,
        notional=notional,
        implied_volatility=iv,
        pos=compute_pos(last, bid, ask),
        direction=direction,
        direction_confidence=confidence,
        trader_type=classify_trader_type(notional, rmp),
        underlying_price=rmp,
        moneyness=moneyness,
        days_to_expiry=dte,
        market_cap=context.market_cap,
        notional_to_market_cap=notional / context.market_cap if context.market_cap > 0 else 0.0,
        tenor_bucket=tenor_bucket(dte),
        is_deep_otm_put=option_type is OptionType.PUT and moneyness <= settings.deep_otm_put_cut,
        is_short_term_spec=dte <= settings.short_term_days,
        is_long_term_hedge=dte >= settings.long_term_days,
        is_large_otm_call=is_large_otm_call,
        within_band=within_band,
    )


def classify_chain(
    frame: pd.DataFrame,
    context: ChainContext,
    settings: ScanSettings,
    stats: Optional[RejectionStats] = None,
) -> ChainClassification:
    """Classify every row of a combined chain frame (see ``OptionsChain.to_dataframe``)."""

    result = ChainClassification(stats=stats if stats is not None else RejectionStats())
    if frame is None or frame.empty:
        return result

    for row in frame.to_dict("records"):
        try:
            option_type = OptionType(str(row.get("type", "")).lower())
        except ValueError:
            result.stats.total += 1
            result.stats.invalid_fields += 1
            continue
        expiration = _parse_expiration(row.get("expiration"))
        if expiration is None:
            result.stats.total += 1
            result.stats.invalid_fields += 1
            continue

        signal = classify_contract(row, option_type, expiration, context, settings, result.stats)
        if signal is None:
            continue
        result.candidates.append(signal)
        if signal.within_band:
            result.signals.append(signal)

    logger.debug("Classified %s chain: %s", context.symbol, result.stats.as_dict())
    return result


__all__ = [
    "ChainClassification",
    "ChainContext",
    "RejectionStats",
    "classify_chain",
    "classify_contract",
    "classify_direction",
    "classify_trader_type",
    "compute_mid",
    "compute_pos",
    "days_to_expiry",
    "minutes_since",
    "parse_last_trade",
    "tenor_bucket",
]
