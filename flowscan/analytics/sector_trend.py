"""Daily sector rotation statistics and the trend signals derived from them.

A capture run groups the day's most active stocks by sector and ranks the
sectors by how many names they placed in the list. The enhanced trend read
walks each sector's recent history (newest first) looking for streaks, rank
jumps, fading momentum and narrow leadership.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from flowscan.adapters.base import AdapterError, MarketDataAdapter, MarketMover
from flowscan.models.market import (
    EnhancedSectorTrends,
    SectorStat,
    SectorTrend,
    SectorTrendPoint,
    TrendSignal,
)
from flowscan.storage.base import Storage

logger = logging.getLogger(__name__)

UNKNOWN_SECTOR = "Unknown"
HISTORY_POINTS = 10
SEVERITY_ORDER = {"alert": 0, "warning": 1, "info": 2}
MISSING_RANK = 999


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _lookup_sector(adapter: MarketDataAdapter, symbol: str) -> str:
    try:
        return adapter.get_fundamentals(symbol).sector or UNKNOWN_SECTOR
    except (AdapterError, NotImplementedError) as exc:
        logger.debug("No sector for %s: %s", symbol, exc)
        return UNKNOWN_SECTOR


def build_sector_stats(movers: Sequence[MarketMover], sectors: Sequence[str], day: date) -> List[SectorStat]:
    """Group movers by sector and rank by member count (ties keep first-seen order)."""

    groups: Dict[str, List[MarketMover]] = OrderedDict()
    for mover, sector in zip(movers, sectors):
        if sector == UNKNOWN_SECTOR:
            continue
        groups.setdefault(sector, []).append(mover)

    unranked = []
    for sector, members in groups.items():
        leader = members[0]
        for member in members[1:]:
            if member.change_percent >= leader.change_percent:
                leader = member
        unranked.append(
            {
                "date": day,
                "sector": sector,
                "stock_count": len(members),
                "avg_change": sum(member.change_percent for member in members) / len(members),
                "total_volume": sum(member.volume for member in members),
                "leader_symbol": leader.symbol,
                "leader_change": leader.change_percent,
            }
        )

    unranked.sort(key=lambda row: row["stock_count"], reverse=True)
    return [SectorStat(rank=index, **row) for index, row in enumerate(unranked, start=1)]


def capture_daily_sector_stats(
    adapter: MarketDataAdapter,
    storage: Storage,
    limit: int = 50,
    day: Optional[date] = None,
    max_workers: int = 5,
) -> List[SectorStat]:
    """Rank today's sectors from the most active movers and replace today's rows."""

    day = day or _today()
    movers = adapter.get_movers("active", limit)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        sectors = list(executor.map(lambda mover: _lookup_sector(adapter, mover.symbol), movers))

    stats = build_sector_stats(movers, sectors, day)
    storage.replace_sector_stats(day, stats)
    logger.info("Captured %d sector stats from %d movers for %s", len(stats), len(movers), day.isoformat())
    return stats


def get_sector_trends(storage: Storage, days: int = 7, today: Optional[date] = None) -> List[SectorStat]:
    today = today or _today()
    return storage.get_sector_stats(today - timedelta(days=days))


def _analyze_sector(
    sector: str, history: List[SectorStat], latest: date
) -> Tuple[SectorTrend, List[TrendSignal]]:
    current = next((row for row in history if row.date == latest), None)
    current_rank = current.rank if current else MISSING_RANK

    streak = 0
    for row in history:
        if row.rank > 3:
            break
        streak += 1

    volume_change_rate = None
    rank_delta = None
    if len(history) >= 2:
        previous_volumes = [row.total_volume for row in history[1:4]]
        average = sum(previous_volumes) / len(previous_volumes)
        if average > 0:
            volume_change_rate = (history[0].total_volume - average) / average * 100
        rank_delta = history[1].rank - history[0].rank

    divergence = False
    if len(history) >= 3:
        changes = [row.avg_change for row in history[:3]]
        weakening = changes[0] < changes[1] < changes[2]
        volume_dropping = history[0].total_volume < history[1].total_volume
        divergence = weakening and volume_dropping and current_rank <= 3

    leader_gap = current.leader_change - current.avg_change if current else None

    signals: List[TrendSignal] = []
    if streak >= 5:
        signals.append(
            TrendSignal(
                type="momentum_decay",
                sector=sector,
                severity="warning",
                message=f"{sector} has been Top 3 for {streak} days",
            )
        )
    if divergence:
        signals.append(
            TrendSignal(
                type="volume_divergence",
                sector=sector,
                severity="alert",
                message=f"{sector}: price weakening with declining volume",
            )
        )
    if rank_delta is not None and rank_delta >= 4:
        signals.append(
            TrendSignal(
                type="rank_breakout",
                sector=sector,
                severity="info",
                message=f"{sector} surged from #{current_rank + rank_delta} to #{current_rank}",
            )
        )
    if current_rank <= 3 and len(history) >= 3:
        previous = history[1:4]
        previous_rank = sum(row.rank for row in previous) / len(previous)
        if previous_rank > 5:
            signals.append(
                TrendSignal(
                    type="emerging_sector",
                    sector=sector,
                    severity="info",
                    message=f"{sector} emerging into Top 3 (prev avg rank: #{previous_rank:.0f})",
                )
            )
    if leader_gap is not None and leader_gap > 3 and current_rank <= 5:
        signals.append(
            TrendSignal(
                type="sector_exhaustion",
                sector=sector,
                severity="warning",
                message=f"{sector}: leader gap {leader_gap:.1f}% ({current.leader_symbol})",
            )
        )

    trend = SectorTrend(
        sector=sector,
        current_rank=current_rank,
        avg_change=current.avg_change if current else 0.0,
        total_volume=current.total_volume if current else 0.0,
        stock_count=current.stock_count if current else 0,
        rank_delta=rank_delta,
        consecutive_top3=streak,
        volume_change_rate=volume_change_rate,
        divergence=divergence,
        leader_symbol=current.leader_symbol if current else None,
        leader_change=current.leader_change if current else None,
        leader_gap=leader_gap,
        is_hot=streak >= 3,
        history=[
            SectorTrendPoint(
                date=row.date,
                rank=row.rank,
                avg_change=row.avg_change,
                stock_count=row.stock_count,
                total_volume=row.total_volume,
            )
            for row in history[:HISTORY_POINTS]
        ],
    )
    return trend, signals


def analyze_sector_trends(stats: Sequence[SectorStat], days: int = 14) -> EnhancedSectorTrends:
    """Per-sector trend read plus rotation signals, from raw daily rows."""

    if not stats:
        return EnhancedSectorTrends(days=days)

    latest = max(row.date for row in stats)
    by_sector: Dict[str, List[SectorStat]] = OrderedDict()
    for row in stats:
        by_sector.setdefault(row.sector, []).append(row)

    sectors: List[SectorTrend] = []
    signals: List[TrendSignal] = []
    for sector, rows in by_sector.items():
        history = sorted(rows, key=lambda row: row.date, reverse=True)
        trend, sector_signals = _analyze_sector(sector, history, latest)
        sectors.append(trend)
        signals.extend(sector_signals)

    sectors.sort(key=lambda trend: trend.current_rank)
    signals.sort(key=lambda signal: SEVERITY_ORDER[signal.severity])
    return EnhancedSectorTrends(days=days, sectors=sectors, signals=signals)


def get_enhanced_sector_trends(
    storage: Storage, days: int = 14, today: Optional[date] = None
) -> EnhancedSectorTrends:
    return analyze_sector_trends(get_sector_trends(storage, days, today), days)


__all__ = [
    "analyze_sector_trends",
    "build_sector_stats",
    "capture_daily_sector_stats",
    "get_enhanced_sector_trends",
    "get_sector_trends",
]
