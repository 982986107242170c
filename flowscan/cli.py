"""Command line entry point: ``python -m flowscan <command>``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from flowscan.analytics.macro import MacroMonitor
from flowscan.analytics.sector_trend import (
    capture_daily_sector_stats,
    get_enhanced_sector_trends,
    get_sector_trends,
)
from flowscan.cache import InMemoryTTLCache
from flowscan.config import get_market_data_adapter, get_settings
from flowscan.jobs import MOVER_KINDS, run_daily_batch
from flowscan.models import serialize_model, serialize_scan_result
from flowscan.options.prefilter import prefilter_details
from flowscan.options.scanner import OptionsFlowScanner
from flowscan.scoring.value import ValueAnalyzer
from flowscan.storage import create_storage
from flowscan.storage.persistence import save_scan_result, snapshot_to_dict

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(verbose: bool, log_dir: str = "logs") -> None:
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path / "flowscan.log", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    logging.getLogger().addHandler(handler)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flowscan", description="Options flow and market context scanner")
    parser.add_argument("--env", default=None, help="Configuration environment (defaults to APP_ENV or dev)")
    parser.add_argument("--provider", default=None, help="Override the market data provider")
    parser.add_argument("--log-dir", default="logs", help="Directory for the log file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Scan option flow for one or more symbols")
    scan.add_argument("symbols", nargs="*", help="Symbols to scan (defaults to the watchlist)")
    scan.add_argument("--watchlist", default="default")
    scan.add_argument("--no-signals", action="store_true", help="Omit individual signals from the output")
    scan.add_argument("--save", action="store_true", help="Persist a snapshot per symbol")
    scan.add_argument("--delay", type=float, default=0.0, help="Seconds to wait between symbols")

    value = sub.add_parser("value", help="Score a symbol's fundamentals")
    value.add_argument("symbol")

    movers = sub.add_parser("movers", help="List market movers")
    movers.add_argument("--type", dest="kind", choices=MOVER_KINDS, default="active")
    movers.add_argument("--limit", type=int, default=12)

    sectors = sub.add_parser("sectors", help="Capture or read sector rotation statistics")
    sectors_sub = sectors.add_subparsers(dest="sectors_command", required=True)
    capture = sectors_sub.add_parser("capture", help="Store today's sector stats from the active movers")
    capture.add_argument("--limit", type=int, default=None)
    trends = sectors_sub.add_parser("trends", help="Print stored sector stats")
    trends.add_argument("--days", type=int, default=7)
    trends.add_argument("--enhanced", action="store_true", help="Include momentum and rotation signals")

    macro = sub.add_parser("macro", help="Print the macro regime snapshot")
    macro.add_argument("--force", action="store_true")

    history = sub.add_parser("history", help="Print stored snapshots for a symbol")
    history.add_argument("symbol")

    batch = sub.add_parser("batch", help="Run the daily batch job")
    batch.add_argument("--market", choices=("US", "CN"), default="US")

    prefilter = sub.add_parser("prefilter", help="Narrow a symbol list before deep scans")
    prefilter.add_argument("symbols", nargs="*", help="Symbols to screen (defaults to the watchlist)")
    prefilter.add_argument("--watchlist", default="default")

    return parser


def run_from_args(args: argparse.Namespace) -> int:
    settings = get_settings(args.env)
    adapter = get_market_data_adapter(args.provider, args.env)

    if args.command == "scan":
        symbols = args.symbols or settings.get_watchlist(args.watchlist)
        scanner = OptionsFlowScanner.from_settings(adapter, settings)
        results, errors = asyncio.run(scanner.scan_many(symbols, args.delay))
        if args.save:
            storage = create_storage(settings)
            for result in results:
                save_scan_result(storage, result)
        _emit(
            {
                "results": [serialize_scan_result(result, include_signals=not args.no_signals) for result in results],
                "errors": [serialize_model(error) for error in errors],
            }
        )
        return 0 if results or not symbols else 1

    if args.command == "value":
        value = ValueAnalyzer(adapter, settings.value).analyze(args.symbol.upper())
        if value is None:
            logger.error("No fundamentals available for %s", args.symbol)
            return 1
        _emit(serialize_model(value))
        return 0

    if args.command == "movers":
        movers = adapter.get_movers(args.kind, args.limit)
        _emit([mover.__dict__ for mover in movers])
        return 0

    if args.command == "sectors":
        storage = create_storage(settings)
        if args.sectors_command == "capture":
            limit = args.limit or settings.batch.sector_movers
            stats = capture_daily_sector_stats(adapter, storage, limit)
            _emit([serialize_model(stat) for stat in stats])
        elif args.enhanced:
            _emit(serialize_model(get_enhanced_sector_trends(storage, args.days)))
        else:
            _emit([serialize_model(stat) for stat in get_sector_trends(storage, args.days)])
        return 0

    if args.command == "macro":
        monitor = MacroMonitor(adapter, InMemoryTTLCache(), ttl=settings.cache.macro_ttl)
        _emit(serialize_model(monitor.snapshot(force=args.force)))
        return 0

    if args.command == "history":
        storage = create_storage(settings)
        _emit([snapshot_to_dict(record) for record in storage.get_history(args.symbol.upper())])
        return 0

    if args.command == "batch":
        storage = create_storage(settings)
        report = asyncio.run(run_daily_batch(args.market, adapter, storage, settings))
        _emit(report.__dict__)
        return 0 if not report.failed or report.saved else 1

    if args.command == "prefilter":
        symbols = args.symbols or settings.get_watchlist(args.watchlist)
        hits = prefilter_details(symbols, adapter, settings.prefilter)
        _emit([hit.__dict__ for hit in hits])
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose, args.log_dir)
    return run_from_args(args)


__all__ = ["build_parser", "main", "run_from_args"]


if __name__ == "__main__":
    sys.exit(main())
