"""Daily batch: scan the day's movers, persist snapshots and capture sector stats."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from flowscan.adapters.base import MarketDataAdapter, MarketMover
from flowscan.analytics.money_flow import fetch_money_flow_strength
from flowscan.analytics.sector_trend import capture_daily_sector_stats
from flowscan.config.loader import AppSettings
from flowscan.markets import Market, get_china_movers
from flowscan.options.scanner import OptionsFlowScanner
from flowscan.scoring.value import ValueAnalyzer
from flowscan.storage.base import Storage
from flowscan.storage.persistence import save_scan_result, save_value_snapshot

logger = logging.getLogger(__name__)

MOVER_KINDS = ("active", "gainers", "losers")


@dataclass
class BatchReport:
    market: str
    symbols: List[str] = field(default_factory=list)
    saved: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    sectors_captured: int = 0


def collect_us_movers(adapter: MarketDataAdapter, per_type: int) -> List[str]:
    """Union of the active, gainer and loser lists in first-seen order."""

    symbols: List[str] = []
    for kind in MOVER_KINDS:
        movers: List[MarketMover] = adapter.get_movers(kind, per_type)
        for mover in movers:
            if mover.symbol not in symbols:
                symbols.append(mover.symbol)
    return symbols


class DailyBatch:
    def __init__(
        self,
        adapter: MarketDataAdapter,
        storage: Storage,
        settings: AppSettings,
        scanner: Optional[OptionsFlowScanner] = None,
        analyzer: Optional[ValueAnalyzer] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.adapter = adapter
        self.storage = storage
        self.settings = settings
        self.scanner = scanner or OptionsFlowScanner.from_settings(adapter, settings)
        self.analyzer = analyzer or ValueAnalyzer(adapter, settings.value)
        self._sleep = sleep

    async def _run_us(self, report: BatchReport) -> None:
        batch = self.settings.batch
        report.symbols = await asyncio.to_thread(collect_us_movers, self.adapter, batch.movers_per_type)
        logger.info("US batch over %d movers", len(report.symbols))

        for index, symbol in enumerate(report.symbols):
            try:
                value, result = await asyncio.gather(
                    asyncio.to_thread(self.analyzer.analyze, symbol),
                    self.scanner.scan(symbol),
                )
            except Exception:
                logger.exception("Batch scan failed for %s", symbol)
                report.failed.append(symbol)
            else:
                if save_scan_result(self.storage, result, value) is not None:
                    report.saved.append(symbol)
                else:
                    report.failed.append(symbol)
            if index < len(report.symbols) - 1:
                await self._sleep(batch.symbol_delay_seconds)

        try:
            stats = await asyncio.to_thread(
                capture_daily_sector_stats, self.adapter, self.storage, batch.sector_movers
            )
            report.sectors_captured = len(stats)
        except Exception:
            logger.exception("Sector capture failed")

    async def _run_cn(self, report: BatchReport) -> None:
        movers = await asyncio.to_thread(get_china_movers, self.adapter, self.settings.batch.china_movers)
        report.symbols = [mover.symbol for mover in movers]
        logger.info("CN batch over %d movers", len(report.symbols))

        for symbol in report.symbols:
            value = await asyncio.to_thread(self.analyzer.analyze, symbol)
            if value is None:
                report.failed.append(symbol)
                continue
            money_flow = await asyncio.to_thread(fetch_money_flow_strength, self.adapter, symbol, 7)
            if save_value_snapshot(self.storage, value, money_flow) is not None:
                report.saved.append(symbol)
            else:
                report.failed.append(symbol)

    async def run(self, market: Market = "US") -> BatchReport:
        report = BatchReport(market=market)
        if market == "CN":
            await self._run_cn(report)
        else:
            await self._run_us(report)
        logger.info(
            "%s batch finished: %d saved, %d failed, %d sectors",
            market,
            len(report.saved),
            len(report.failed),
            report.sectors_captured,
        )
        return report


async def run_daily_batch(
    market: Market,
    adapter: MarketDataAdapter,
    storage: Storage,
    settings: AppSettings,
) -> BatchReport:
    return await DailyBatch(adapter, storage, settings).run(market)


__all__ = ["BatchReport", "DailyBatch", "collect_us_movers", "run_daily_batch"]
