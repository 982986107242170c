from __future__ import annotations

from unittest.mock import MagicMock

from flowscan.models.market import ValueScore
from flowscan.models.results import ExtendedSentiment, ScanResult, SentimentSnapshot
from flowscan.models.signal import OptionType
from flowscan.options.combos import apply_combos, identify_combos
from flowscan.storage import SQLiteStorage, StorageError
from flowscan.storage.persistence import (
    build_snapshot,
    save_scan_result,
    save_value_snapshot,
    snapshot_to_dict,
)


def make_result(make_signal, symbol="AAPL"):
    legs = [
        make_signal(symbol=symbol, strike=100.0),
        make_signal(symbol=symbol, option_type=OptionType.PUT, strike=100.0, moneyness=1.0),
    ]
    signals = apply_combos(legs, identify_combos(legs))
    return ScanResult(
        symbol=symbol,
        price=100.0,
        money_flow_strength=0.4,
        signals=signals,
        sentiment=SentimentSnapshot(symbol=symbol, sentiment=35.0),
        extended=ExtendedSentiment(symbol=symbol),
    )


def test_build_snapshot_maps_signals_and_combos(make_signal):
    value = ValueScore(symbol="AAPL", score=7.5)

    snapshot, signals, combos = build_snapshot(make_result(make_signal), value)

    assert snapshot.value_score == 7.5
    assert snapshot.sentiment_score == 35.0
    assert snapshot.market == "US"
    assert [signal.option_type for signal in signals] == ["call", "put"]
    assert signals[0].direction == "BUY"
    assert len(combos) == 1
    assert combos[0].strategy == "Long straddle"


def test_save_scan_result_persists(tmp_path, make_signal):
    storage = SQLiteStorage(tmp_path / "flowscan.db")

    snapshot_id = save_scan_result(storage, make_result(make_signal))

    (record,) = storage.get_history("AAPL")
    assert record.id == snapshot_id
    assert record.combos[0].risk_profile == "Hedge/Neutral"
    assert len(storage.get_signals(snapshot_id)) == 2


def test_storage_failures_are_swallowed(make_signal):
    storage = MagicMock()
    storage.save_snapshot.side_effect = StorageError("disk full")

    assert save_scan_result(storage, make_result(make_signal)) is None
    assert save_value_snapshot(storage, ValueScore(symbol="KO", score=5.0)) is None


def test_value_snapshot_uses_score_as_sentiment(tmp_path):
    storage = SQLiteStorage(tmp_path / "flowscan.db")

    save_value_snapshot(storage, ValueScore(symbol="600519.ss", price=1700.0, score=6.0), money_flow_strength=0.1)

    (record,) = storage.get_history("600519.SS")
    assert record.market == "CN"
    assert record.sentiment_score == 6.0


def test_snapshot_to_dict_is_json_friendly(tmp_path, make_signal):
    storage = SQLiteStorage(tmp_path / "flowscan.db")
    save_scan_result(storage, make_result(make_signal))

    payload = snapshot_to_dict(storage.get_history("AAPL")[0])

    assert isinstance(payload["taken_at"], str)
    assert payload["combos"][0]["strategy"] == "Long straddle"
    assert list(payload["signals"]) == []
