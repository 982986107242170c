"""Adapter implementation backed by the public yfinance client."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence

import pandas as pd
import requests
import yfinance as yf

from .base import (
    AdapterError,
    DataNotAvailable,
    Fundamentals,
    MarketDataAdapter,
    MarketMover,
    OptionsChain,
    Quote,
    TransientAdapterError,
)
from .retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

SCREENER_URL = "https://query2.finance.yahoo.com/v1/finance/screener/predefined/saved"
SCREENER_IDS = {
    "active": "most_actives",
    "gainers": "day_gainers",
    "losers": "day_losers",
}
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "application/json",
}


def _as_percent(value: Any) -> Optional[float]:
    number = _to_float(value)
    return number * 100 if number is not None else None


def _to_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class YFinanceMarketDataAdapter(MarketDataAdapter):
    """Fetch chains, quotes, history and fundamentals from Yahoo Finance via yfinance."""

    def __init__(
        self,
        ticker_factory: Callable[[str], yf.Ticker] | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = 30,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._ticker_factory = ticker_factory or yf.Ticker
        self._policy = retry_policy or RetryPolicy()
        self._timeout_seconds = timeout_seconds
        self._session = session
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "yfinance"

    def get_expirations(self, symbol: str) -> Sequence[date]:
        ticker = self._ticker_factory(symbol)
        expirations = self._retry(lambda: ticker.options, context=f"fetch expirations for {symbol}")
        parsed: List[date] = []
        for raw in expirations or ():
            try:
                parsed.append(datetime.strptime(raw, "%Y-%m-%d").date())
            except ValueError:
                continue
        return parsed

    def get_chain(self, symbol: str, expiration: date) -> OptionsChain:
        ticker = self._ticker_factory(symbol)
        expiration_str = expiration.strftime("%Y-%m-%d")
        option_chain = self._retry(
            lambda: ticker.option_chain(expiration_str),
            context=f"fetch options chain for {symbol} {expiration_str}",
        )

        calls_frame = getattr(option_chain, "calls", None)
        puts_frame = getattr(option_chain, "puts", None)
        calls = calls_frame.copy() if calls_frame is not None else pd.DataFrame()
        puts = puts_frame.copy() if puts_frame is not None else pd.DataFrame()
        price, source = self._extract_price(ticker)

        return OptionsChain(
            symbol=symbol,
            expiration=expiration,
            calls=calls,
            puts=puts,
            underlying_price=price,
            price_source=source,
        )

    def get_quote(self, symbol: str) -> Quote:
        ticker = self._ticker_factory(symbol)
        info = self._info(ticker, symbol)
        price, source = self._extract_price(ticker, info=info)
        if price is None:
            raise DataNotAvailable(f"No price available for {symbol}")

        return Quote(
            symbol=symbol,
            price=price,
            market_cap=_to_float(info.get("marketCap")),
            market_state=info.get("marketState"),
            change_percent=_to_float(info.get("regularMarketChangePercent")),
            volume=_to_float(info.get("regularMarketVolume") or info.get("volume")),
            name=info.get("shortName") or info.get("longName"),
            timestamp=datetime.now(timezone.utc),
            source=source,
        )

    def get_price_history(self, symbol: str, days: int) -> pd.DataFrame:
        ticker = self._ticker_factory(symbol)
        start = (datetime.now(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%d")
        history = self._retry(
            lambda: ticker.history(start=start, interval="1d"),
            context=f"fetch price history for {symbol}",
        )
        if not isinstance(history, pd.DataFrame):
            return pd.DataFrame()
        return history

    def get_fundamentals(self, symbol: str) -> Fundamentals:
        ticker = self._ticker_factory(symbol)
        info = self._info(ticker, symbol)
        if not info:
            raise DataNotAvailable(f"No fundamentals available for {symbol}")

        pe = _to_float(info.get("trailingPE"))
        if pe is None:
            pe = _to_float(info.get("forwardPE"))
        price = _to_float(info.get("currentPrice")) or _to_float(info.get("regularMarketPrice"))

        return Fundamentals(
            symbol=symbol,
            price=price,
            name=info.get("shortName") or info.get("longName"),
            sector=info.get("sector"),
            industry=info.get("industry"),
            pe=pe,
            pb=_to_float(info.get("priceToBook")),
            roe=_as_percent(info.get("returnOnEquity")),
            profit_margin=_as_percent(info.get("profitMargins")),
            debt_to_equity=_to_float(info.get("debtToEquity")),
            revenue_growth=_as_percent(info.get("revenueGrowth")),
        )

    def get_earnings_date(self, symbol: str) -> Optional[date]:
        ticker = self._ticker_factory(symbol)
        try:
            calendar = self._retry(lambda: ticker.calendar, context=f"fetch earnings calendar for {symbol}")
        except AdapterError as exc:
            logger.debug("Earnings calendar unavailable for %s: %s", symbol, exc)
            return None

        raw_dates: Any = None
        if isinstance(calendar, dict):
            raw_dates = calendar.get("Earnings Date")
        elif isinstance(calendar, pd.DataFrame) and "Earnings Date" in calendar.index:
            raw_dates = list(calendar.loc["Earnings Date"].values)

        if raw_dates is None:
            return None
        if not isinstance(raw_dates, (list, tuple)):
            raw_dates = [raw_dates]

        today = datetime.now(timezone.utc).date()
        upcoming: List[date] = []
        for raw in raw_dates:
            try:
                parsed = pd.Timestamp(raw).date()
            except (TypeError, ValueError):
                continue
            if parsed >= today:
                upcoming.append(parsed)
        return min(upcoming) if upcoming else None

    def get_movers(self, kind: str, limit: int) -> List[MarketMover]:
        scr_id = SCREENER_IDS.get(kind)
        if scr_id is None:
            raise ValueError(f"Unknown mover type: {kind}")

        session = self._session or requests.Session()
        try:
            response = session.get(
                SCREENER_URL,
                params={"scrIds": scr_id, "count": limit},
                headers=BROWSER_HEADERS,
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
            quotes = payload["finance"]["result"][0]["quotes"]
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("Failed to fetch %s movers from Yahoo screener: %s", kind, exc)
            return []

        movers: List[MarketMover] = []
        for item in quotes[:limit]:
            price = _to_float(item.get("regularMarketPrice"))
            if not item.get("symbol") or price is None:
                continue
            movers.append(
                MarketMover(
                    symbol=item["symbol"],
                    name=item.get("shortName") or item.get("longName"),
                    price=price,
                    change_percent=_to_float(item.get("regularMarketChangePercent")) or 0.0,
                    volume=_to_float(item.get("regularMarketVolume")) or 0.0,
                )
            )
        return movers

    def _info(self, ticker: yf.Ticker, symbol: str) -> dict:
        info = self._retry(lambda: ticker.info, context=f"fetch info for {symbol}")
        return info if isinstance(info, dict) else {}

    def _retry(self, operation: Callable[[], Any], context: str):
        def guarded():
            try:
                return operation()
            except AdapterError:
                raise
            except Exception as exc:  # yfinance raises generic errors
                raise TransientAdapterError(str(exc)) from exc

        kwargs = {"policy": self._policy, "context": context, "timeout_seconds": self._timeout_seconds}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return call_with_retry(guarded, **kwargs)

    def _extract_price(self, ticker: yf.Ticker, info: Optional[dict] = None) -> tuple[Optional[float], Optional[str]]:
        """Return the freshest underlying price and where it came from.

        fast_info is near real-time; the info dict may be cached or stale, and
        previousClose is the last resort.
        """

        try:
            fast_info = self._retry(lambda: getattr(ticker, "fast_info", {}), context="fetch fast price info")
            getter = getattr(fast_info, "get", None)
            if getter is not None:
                for key in ("last_price", "lastPrice", "regular_market_price", "regularMarketPrice"):
                    try:
                        value = getter(key)
                    except (KeyError, TypeError):
                        continue
                    if self._is_valid_price(value):
                        return float(value), f"fast_info.{key}"
        except AdapterError:
            pass

        if info is None:
            try:
                info = self._retry(lambda: ticker.info, context="fetch price metadata")
            except AdapterError:
                info = None

        if isinstance(info, dict):
            market_state = info.get("marketState", "UNKNOWN")
            for key in ("currentPrice", "regularMarketPrice"):
                value = info.get(key)
                if self._is_valid_price(value):
                    return float(value), f"info.{key}_{market_state}"
            value = info.get("previousClose")
            if self._is_valid_price(value):
                return float(value), "info.previousClose_STALE"

        return None, None

    def _is_valid_price(self, value: Any) -> bool:
        """Check if a value represents a valid price."""
        if value in (None, 0, ""):
            return False
        try:
            price_val = float(value)
        except (TypeError, ValueError):
            return False
        return math.isfinite(price_val) and price_val > 0


__all__ = ["YFinanceMarketDataAdapter"]
