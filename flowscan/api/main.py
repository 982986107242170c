"""FastAPI application serving scans, value scores and market context to the dashboard."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from functools import lru_cache
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Query

from flowscan import __version__
from flowscan.adapters import AdapterError, DataNotAvailable, MarketDataAdapter
from flowscan.analytics.macro import MacroMonitor
from flowscan.analytics.sector_trend import get_enhanced_sector_trends, get_sector_trends
from flowscan.cache import Cache, InMemoryTTLCache, cache_key
from flowscan.config import AppSettings, get_market_data_adapter, get_settings
from flowscan.jobs import MOVER_KINDS
from flowscan.markets import detect_market
from flowscan.models import MoverView, serialize_model, serialize_scan_result
from flowscan.options.scanner import OptionsFlowScanner
from flowscan.scoring.value import ValueAnalyzer
from flowscan.storage import Storage, StorageError, create_storage
from flowscan.storage.persistence import save_scan_result, snapshot_to_dict

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Flowscan API", version=__version__)

_shutdown_stack = AsyncExitStack()


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    return get_settings()


@lru_cache(maxsize=1)
def get_adapter() -> MarketDataAdapter:
    return get_market_data_adapter()


@lru_cache(maxsize=1)
def get_storage() -> Storage:
    return create_storage(get_app_settings())


@lru_cache(maxsize=1)
def get_cache() -> Cache:
    return InMemoryTTLCache()


def get_scanner(
    adapter: MarketDataAdapter = Depends(get_adapter),
    settings: AppSettings = Depends(get_app_settings),
) -> OptionsFlowScanner:
    return OptionsFlowScanner.from_settings(adapter, settings)


def get_value_analyzer(
    adapter: MarketDataAdapter = Depends(get_adapter),
    settings: AppSettings = Depends(get_app_settings),
) -> ValueAnalyzer:
    return ValueAnalyzer(adapter, settings.value)


def get_macro_monitor(
    adapter: MarketDataAdapter = Depends(get_adapter),
    cache: Cache = Depends(get_cache),
    settings: AppSettings = Depends(get_app_settings),
) -> MacroMonitor:
    return MacroMonitor(adapter, cache, ttl=settings.cache.macro_ttl)


@app.on_event("startup")
async def on_startup() -> None:
    logger.info("Starting flowscan API")
    await _shutdown_stack.__aenter__()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    logger.info("Shutting down flowscan API")
    await _shutdown_stack.aclose()


@app.get("/api/movers")
async def movers(
    kind: str = Query("active", alias="type"),
    limit: int = Query(12, ge=1, le=100),
    adapter: MarketDataAdapter = Depends(get_adapter),
    analyzer: ValueAnalyzer = Depends(get_value_analyzer),
    cache: Cache = Depends(get_cache),
    settings: AppSettings = Depends(get_app_settings),
) -> List[Dict[str, Any]]:
    """Market movers of one kind, each enriched with its value score."""

    if kind not in MOVER_KINDS:
        raise HTTPException(status_code=400, detail=f"type must be one of {', '.join(MOVER_KINDS)}")

    key = cache_key("movers", kind, limit)
    cached = cache.get(key)
    if cached is not None:
        logger.info("Serving cached %s movers", kind)
        return cached

    try:
        raw = await asyncio.to_thread(adapter.get_movers, kind, limit)
        values = await asyncio.gather(*(asyncio.to_thread(analyzer.analyze, mover.symbol) for mover in raw))
    except Exception:
        logger.exception("Failed to fetch %s movers", kind)
        raise HTTPException(status_code=500, detail="Failed to fetch movers")

    payload = []
    for mover, value in zip(raw, values):
        view = MoverView(
            symbol=mover.symbol,
            name=mover.name,
            price=mover.price,
            change_percent=mover.change_percent,
            volume=mover.volume,
            market=detect_market(mover.symbol),
            value_score=value.score if value else None,
            sector=value.sector if value else None,
            metrics=value.metrics if value else {},
            reasons=value.reasons if value else [],
        )
        payload.append(serialize_model(view))

    cache.set(key, payload, settings.cache.movers_ttl)
    return payload


@app.get("/api/value/{symbol}")
def value(
    symbol: str,
    analyzer: ValueAnalyzer = Depends(get_value_analyzer),
    cache: Cache = Depends(get_cache),
    settings: AppSettings = Depends(get_app_settings),
) -> Dict[str, Any]:
    symbol = symbol.upper()
    key = cache_key("value", symbol)
    cached = cache.get(key)
    if cached is not None:
        return cached

    try:
        result = analyzer.analyze(symbol)
    except Exception:
        logger.exception("Value analysis failed for %s", symbol)
        raise HTTPException(status_code=500, detail="Analysis failed")
    if result is None:
        raise HTTPException(status_code=404, detail="Data not found")

    payload = serialize_model(result)
    cache.set(key, payload, settings.cache.value_ttl)
    return payload


@app.get("/api/options/{symbol}")
async def options(
    symbol: str,
    scanner: OptionsFlowScanner = Depends(get_scanner),
    storage: Storage = Depends(get_storage),
    cache: Cache = Depends(get_cache),
    settings: AppSettings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Run an options-flow scan and record the snapshot."""

    symbol = symbol.upper()
    key = cache_key("options", symbol)
    cached = cache.get(key)
    if cached is not None:
        logger.info("Serving cached options for %s", symbol)
        return cached

    try:
        result = await scanner.scan(symbol)
    except DataNotAvailable as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except AdapterError as exc:
        logger.warning("Provider failure scanning %s: %s", symbol, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception:
        logger.exception("Options scan failed for %s", symbol)
        raise HTTPException(status_code=500, detail="Options scan failed")

    await asyncio.to_thread(save_scan_result, storage, result)

    payload = serialize_scan_result(result)
    cache.set(key, payload, settings.cache.options_ttl)
    return payload


@app.get("/api/history/{symbol}")
def history(symbol: str, storage: Storage = Depends(get_storage)) -> List[Dict[str, Any]]:
    try:
        records = storage.get_history(symbol.upper())
    except StorageError:
        logger.exception("History lookup failed for %s", symbol)
        raise HTTPException(status_code=500, detail="Failed to fetch history")
    return [snapshot_to_dict(record) for record in records]


@app.get("/api/trends/sectors")
def sector_trends(
    days: int = Query(7, ge=1, le=90), storage: Storage = Depends(get_storage)
) -> List[Dict[str, Any]]:
    try:
        stats = get_sector_trends(storage, days)
    except StorageError:
        logger.exception("Sector trend lookup failed")
        raise HTTPException(status_code=500, detail="Failed to fetch sector trends")
    return [serialize_model(stat) for stat in stats]


@app.get("/api/trends/sectors/enhanced")
def enhanced_sector_trends(
    days: int = Query(14, ge=1, le=90), storage: Storage = Depends(get_storage)
) -> Dict[str, Any]:
    try:
        trends = get_enhanced_sector_trends(storage, days)
    except StorageError:
        logger.exception("Enhanced sector trend lookup failed")
        raise HTTPException(status_code=500, detail="Failed to fetch sector trends")
    return serialize_model(trends)


@app.get("/api/macro")
def macro(force: bool = False, monitor: MacroMonitor = Depends(get_macro_monitor)) -> Dict[str, Any]:
    try:
        snapshot = monitor.snapshot(force=force)
    except Exception:
        logger.exception("Macro snapshot failed")
        raise HTTPException(status_code=500, detail="Failed to build macro snapshot")
    return serialize_model(snapshot)


__all__ = [
    "app",
    "get_adapter",
    "get_app_settings",
    "get_cache",
    "get_macro_monitor",
    "get_scanner",
    "get_storage",
    "get_value_analyzer",
]
