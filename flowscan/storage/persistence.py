"""Best-effort persistence of scan results as snapshot rows."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Tuple

from flowscan.markets import detect_market
from flowscan.models.market import ValueScore
from flowscan.models.results import ScanResult
from flowscan.options.combos import summarize_combos

from .base import ComboRecord, SignalRecord, SnapshotRecord, Storage

logger = logging.getLogger(__name__)


def build_snapshot(
    result: ScanResult, value: Optional[ValueScore] = None
) -> Tuple[SnapshotRecord, List[SignalRecord], List[ComboRecord]]:
    snapshot = SnapshotRecord(
        symbol=result.symbol.upper(),
        market=detect_market(result.symbol),
        price=result.price or 0.0,
        value_score=value.score if value is not None else 0.0,
        sentiment_score=result.sentiment.sentiment,
        money_flow_strength=result.money_flow_strength,
    )
    signals = [
        SignalRecord(
            option_type=signal.option_type.value,
            strike=signal.strike,
            expiry=signal.expiration,
            notional=signal.notional,
            direction=signal.direction.value,
        )
        for signal in result.signals
    ]
    combos = [
        ComboRecord(
            strategy=summary.strategy,
            description=summary.description,
            notional=summary.notional,
            risk_profile=summary.risk_profile,
        )
        for summary in (result.combos or summarize_combos(result.signals))
    ]
    return snapshot, signals, combos


def save_scan_result(storage: Storage, result: ScanResult, value: Optional[ValueScore] = None) -> Optional[int]:
    """Write a snapshot; failures are logged and swallowed so callers never break on storage."""

    try:
        snapshot, signals, combos = build_snapshot(result, value)
        snapshot_id = storage.save_snapshot(snapshot, signals, combos)
    except Exception:
        logger.exception("Failed to save snapshot for %s", result.symbol)
        return None
    logger.info("Saved snapshot %s for %s (%d combos)", snapshot_id, snapshot.symbol, len(combos))
    return snapshot_id


def save_value_snapshot(storage: Storage, value: ValueScore, money_flow_strength: float = 0.0) -> Optional[int]:
    """Snapshot for symbols without an options scan; the value score doubles as sentiment."""

    snapshot = SnapshotRecord(
        symbol=value.symbol.upper(),
        market=detect_market(value.symbol),
        price=value.price,
        value_score=value.score,
        sentiment_score=value.score,
        money_flow_strength=money_flow_strength,
    )
    try:
        snapshot_id = storage.save_snapshot(snapshot)
    except Exception:
        logger.exception("Failed to save value snapshot for %s", value.symbol)
        return None
    return snapshot_id


def snapshot_to_dict(record: SnapshotRecord) -> Dict[str, Any]:
    """JSON-friendly form of a stored snapshot for the API and CLI."""

    payload = asdict(record)
    payload["taken_at"] = record.taken_at.isoformat() if record.taken_at else None
    for signal in payload["signals"]:
        signal["expiry"] = signal["expiry"].isoformat()
    return payload


__all__ = ["build_snapshot", "save_scan_result", "save_value_snapshot", "snapshot_to_dict"]
