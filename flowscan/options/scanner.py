"""Asynchronous options-flow scan of one symbol or a list of symbols."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from flowscan.adapters.base import AdapterError, MarketDataAdapter, OptionsChain, Quote
from flowscan.analytics.money_flow import fetch_money_flow_strength
from flowscan.config.loader import AppSettings, ComboSettings, ScanSettings, SentimentSettings
from flowscan.markets import detect_market
from flowscan.models.results import ScanError, ScanResult
from flowscan.scoring.hedge import HedgeScoringEngine

from .activity import analyze_chain_activity
from .classifier import ChainContext, RejectionStats, classify_chain
from .combos import apply_combos, identify_combos, merge_combo_legs, summarize_combos
from .earnings import days_to_earnings
from .enrichment import enrich_signals
from .sentiment import aggregate_sentiment, compute_extended_sentiment

logger = logging.getLogger(__name__)

REGULAR_SESSION = "REGULAR"


def select_expirations(
    expirations: Sequence[date],
    now: datetime,
    max_days: int = 30,
    limit: Optional[int] = None,
) -> List[date]:
    """Expirations between now and ``max_days`` out, soonest first, optionally capped."""

    selected = []
    for expiration in sorted(expirations):
        expiry_dt = datetime(expiration.year, expiration.month, expiration.day, tzinfo=timezone.utc)
        days = (expiry_dt - now).total_seconds() / 86400
        if 0 <= days <= max_days:
            selected.append(expiration)
    if limit is not None and limit > 0:
        selected = selected[: max(1, int(limit))]
    return selected


def fresh_window_minutes(market_state: Optional[str], settings: ScanSettings) -> int:
    if (market_state or "").upper() == REGULAR_SESSION:
        return settings.regular_fresh_window_mins
    return settings.non_regular_fresh_window_mins


class OptionsFlowScanner:
    """Run the full classify, combo, hedge, enrich and sentiment pipeline for a symbol.

    Provider calls are blocking, so they run in worker threads and independent
    requests are awaited together.
    """

    def __init__(
        self,
        adapter: MarketDataAdapter,
        scan_settings: Optional[ScanSettings] = None,
        combo_settings: Optional[ComboSettings] = None,
        sentiment_settings: Optional[SentimentSettings] = None,
        hedge_config: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.adapter = adapter
        self.scan_settings = scan_settings or ScanSettings()
        self.combo_settings = combo_settings or ComboSettings()
        self.sentiment_settings = sentiment_settings or SentimentSettings()
        self.hedge_engine = HedgeScoringEngine(hedge_config)

    @classmethod
    def from_settings(cls, adapter: MarketDataAdapter, settings: AppSettings) -> "OptionsFlowScanner":
        return cls(
            adapter,
            scan_settings=settings.scan,
            combo_settings=settings.combos,
            sentiment_settings=settings.sentiment,
            hedge_config=settings.hedge,
        )

    async def _fetch_chain(self, symbol: str, expiration: date) -> Optional[OptionsChain]:
        try:
            return await asyncio.to_thread(self.adapter.get_chain, symbol, expiration)
        except AdapterError as exc:
            logger.warning("Skipping %s %s chain: %s", symbol, expiration.isoformat(), exc)
            return None

    async def _gather_inputs(self, symbol: str) -> Tuple[Quote, float, Optional[int]]:
        quote, money_flow, earnings = await asyncio.gather(
            asyncio.to_thread(self.adapter.get_quote, symbol),
            asyncio.to_thread(
                fetch_money_flow_strength, self.adapter, symbol, self.scan_settings.money_flow_days
            ),
            asyncio.to_thread(days_to_earnings, self.adapter, symbol),
        )
        return quote, money_flow, earnings

    async def scan(self, symbol: str, now: Optional[datetime] = None) -> ScanResult:
        symbol = symbol.strip().upper()
        now = now or datetime.now(timezone.utc)
        settings = self.scan_settings

        quote, money_flow, earnings_days = await self._gather_inputs(symbol)
        logger.debug("%s money flow strength %.3f", symbol, money_flow)

        expirations = await asyncio.to_thread(self.adapter.get_expirations, symbol)
        targets = select_expirations(expirations, now, settings.max_expiry_days, settings.limit_expirations)
        window = fresh_window_minutes(quote.market_state, settings)

        chains = await asyncio.gather(*(self._fetch_chain(symbol, expiration) for expiration in targets))
        frames = [chain.to_dataframe() for chain in chains if chain is not None]
        price = quote.price
        for chain in chains:
            if chain is not None and chain.underlying_price and not price:
                price = chain.underlying_price

        context = ChainContext(
            symbol=symbol,
            underlying_price=price,
            market_cap=quote.market_cap or 0.0,
            fresh_window_minutes=window,
            now=now,
        )
        stats = RejectionStats()
        candidates = []
        for frame in frames:
            candidates.extend(classify_chain(frame, context, settings, stats).candidates)

        assignments = identify_combos(candidates, self.combo_settings)
        candidates = apply_combos(candidates, assignments)
        signals = merge_combo_legs(candidates)
        logger.debug("%s: %d signals, %d combo legs", symbol, len(signals), len(assignments))

        sentiment = aggregate_sentiment(signals, symbol)
        signals = self.hedge_engine.score_signals(signals, money_flow)
        signals = enrich_signals(signals, money_flow, earnings_days)
        extended = compute_extended_sentiment(signals, sentiment, price, self.sentiment_settings, money_flow)

        activity = analyze_chain_activity(frames, now=now)

        logger.info(
            "Scanned %s: %d expirations, %d signals, sentiment %.1f",
            symbol,
            len(targets),
            len(signals),
            sentiment.sentiment,
        )
        return ScanResult(
            symbol=symbol,
            market=detect_market(symbol),
            price=price,
            market_cap=quote.market_cap,
            market_state=quote.market_state,
            money_flow_strength=money_flow,
            days_to_earnings=earnings_days,
            fresh_window_mins=window,
            expirations=targets,
            signals=signals,
            combos=summarize_combos(signals),
            sentiment=sentiment,
            extended=extended,
            activity=activity,
            rejections=stats.as_dict(),
            generated_at=now,
        )

    async def scan_many(
        self, symbols: Sequence[str], delay_seconds: float = 0.0
    ) -> Tuple[List[ScanResult], List[ScanError]]:
        """Scan symbols one after another; failures are logged and reported, not raised."""

        results: List[ScanResult] = []
        errors: List[ScanError] = []
        for index, symbol in enumerate(symbols):
            try:
                results.append(await self.scan(symbol))
            except Exception as exc:
                logger.exception("Scan failed for %s", symbol)
                errors.append(ScanError(symbol=symbol, reason=str(exc)))
            if delay_seconds and index < len(symbols) - 1:
                await asyncio.sleep(delay_seconds)
        return results, errors


__all__ = ["OptionsFlowScanner", "fresh_window_minutes", "select_expirations"]
