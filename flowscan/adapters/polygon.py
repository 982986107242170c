"""Polygon.io REST adapter."""

from __future__ import annotations

import logging
import os
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd
import requests

from .base import (
    AdapterError,
    DataNotAvailable,
    MarketDataAdapter,
    OptionsChain,
    Quote,
    RateLimitError,
    TransientAdapterError,
)
from .retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.polygon.io"
CHAIN_PAGE_LIMIT = 250


def _ns_to_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1e9, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class PolygonMarketDataAdapter(MarketDataAdapter):
    """Fetch chain snapshots, quotes and aggregates from the Polygon REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        session: requests.Session | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = 15,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._api_key = api_key or os.getenv("POLYGON_API_KEY")
        if not self._api_key:
            raise AdapterError("POLYGON_API_KEY is not configured")
        self._base_url = (base_url or os.getenv("POLYGON_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self._session = session or requests.Session()
        self._policy = retry_policy or RetryPolicy()
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "polygon"

    def get_expirations(self, symbol: str) -> Sequence[date]:
        today = datetime.now(timezone.utc).date()
        params = {
            "underlying_ticker": symbol,
            "expired": "false",
            "expiration_date.gte": today.isoformat(),
            "limit": 1000,
        }
        results = self._paginate("/v3/reference/options/contracts", params, context=f"fetch expirations for {symbol}")
        expirations = set()
        for item in results:
            raw = item.get("expiration_date")
            try:
                expirations.add(datetime.strptime(raw, "%Y-%m-%d").date())
            except (TypeError, ValueError):
                continue
        return sorted(expirations)

    def get_chain(self, symbol: str, expiration: date) -> OptionsChain:
        params = {"expiration_date": expiration.isoformat(), "limit": CHAIN_PAGE_LIMIT}
        results = self._paginate(
            f"/v3/snapshot/options/{symbol}",
            params,
            context=f"fetch options chain for {symbol} {expiration.isoformat()}",
        )

        calls: List[Dict[str, Any]] = []
        puts: List[Dict[str, Any]] = []
        underlying_price: Optional[float] = None
        for item in results:
            details = item.get("details") or {}
            last_trade = item.get("last_trade") or {}
            last_quote = item.get("last_quote") or {}
            day = item.get("day") or {}
            underlying = item.get("underlying_asset") or {}
            if underlying_price is None and underlying.get("price"):
                underlying_price = float(underlying["price"])

            row = {
                "contractSymbol": details.get("ticker"),
                "strike": details.get("strike_price"),
                "lastPrice": last_trade.get("price"),
                "lastTradeDate": _ns_to_datetime(last_trade.get("sip_timestamp")),
                "bid": last_quote.get("bid"),
                "ask": last_quote.get("ask"),
                "volume": day.get("volume"),
                "openInterest": item.get("open_interest"),
                "impliedVolatility": item.get("implied_volatility"),
            }
            contract_type = details.get("contract_type")
            if contract_type == "call":
                calls.append(row)
            elif contract_type == "put":
                puts.append(row)

        return OptionsChain(
            symbol=symbol,
            expiration=expiration,
            calls=pd.DataFrame(calls),
            puts=pd.DataFrame(puts),
            underlying_price=underlying_price,
            price_source="polygon.underlying_asset" if underlying_price is not None else None,
        )

    def get_quote(self, symbol: str) -> Quote:
        payload = self._request(
            f"/v2/snapshot/locale/us/markets/stocks/tickers/{symbol}",
            {},
            context=f"fetch quote for {symbol}",
        )
        ticker = payload.get("ticker") or {}
        last_trade = ticker.get("lastTrade") or {}
        day = ticker.get("day") or {}
        price = last_trade.get("p") or day.get("c")
        if not price:
            raise DataNotAvailable(f"No price available for {symbol}")

        return Quote(
            symbol=symbol,
            price=float(price),
            change_percent=ticker.get("todaysChangePerc"),
            volume=day.get("v"),
            timestamp=datetime.now(timezone.utc),
            source="polygon.snapshot",
        )

    def get_price_history(self, symbol: str, days: int) -> pd.DataFrame:
        end = datetime.now(timezone.utc).date()
        start = end - timedelta(days=days)
        payload = self._request(
            f"/v2/aggs/ticker/{symbol}/range/1/day/{start.isoformat()}/{end.isoformat()}",
            {"adjusted": "true", "sort": "asc"},
            context=f"fetch price history for {symbol}",
        )
        bars = payload.get("results") or []
        if not bars:
            return pd.DataFrame(columns=["Open", "High", "Low", "Close", "Volume"])

        frame = pd.DataFrame(bars)
        frame.index = pd.to_datetime(frame["t"], unit="ms", utc=True)
        frame = frame.rename(columns={"o": "Open", "h": "High", "l": "Low", "c": "Close", "v": "Volume"})
        return frame[["Open", "High", "Low", "Close", "Volume"]]

    def _paginate(self, path: str, params: Dict[str, Any], context: str) -> List[Dict[str, Any]]:
        payload = self._request(path, params, context=context)
        results = list(payload.get("results") or [])
        next_url = payload.get("next_url")
        while next_url:
            payload = self._request(next_url, {}, context=context)
            results.extend(payload.get("results") or [])
            next_url = payload.get("next_url")
        return results

    def _request(self, path: str, params: Dict[str, Any], context: str) -> Dict[str, Any]:
        url = path if path.startswith("http") else f"{self._base_url}{path}"
        query = dict(params)
        query["apiKey"] = self._api_key

        def operation() -> Dict[str, Any]:
            try:
                response = self._session.get(url, params=query, timeout=self._timeout_seconds)
            except requests.RequestException as exc:
                raise TransientAdapterError(str(exc)) from exc

            status = response.status_code
            if status == 429:
                raise RateLimitError(f"Polygon rate limit hit while trying to {context}")
            if status == 404:
                raise DataNotAvailable(f"Polygon has no data to {context}")
            if status >= 500:
                raise TransientAdapterError(f"Polygon returned {status}")
            if status >= 400:
                raise AdapterError(f"Polygon rejected request ({status}) while trying to {context}")
            try:
                return response.json()
            except ValueError as exc:
                raise AdapterError(f"Polygon returned invalid JSON while trying to {context}") from exc

        kwargs = {"policy": self._policy, "context": context, "timeout_seconds": None}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return call_with_retry(operation, **kwargs)


__all__ = ["PolygonMarketDataAdapter"]
