"""SQLite-backed storage implementation."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from flowscan.models.market import SectorStat

from .base import ComboRecord, SignalRecord, SnapshotRecord, Storage, StorageError


def _ensure_parent_exists(path: Path) -> None:
    if path.name == ":memory:":
        return
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


class SQLiteStorage(Storage):
    """Persist snapshots and sector statistics in a lightweight SQLite database."""

    def __init__(
        self,
        database: str | Path,
        pragmas: Optional[Mapping[str, Any]] = None,
        *,
        uri: bool = False,
    ) -> None:
        self._database = str(database)
        self._uri = uri
        self._pragmas = dict(pragmas or {})
        if not uri and self._database != ":memory:":
            _ensure_parent_exists(Path(self._database))
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._database, uri=self._uri)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        for key, value in self._pragmas.items():
            conn.execute(f"PRAGMA {key}={value};")
        return conn

    def _ensure_schema(self) -> None:
        schema = """
        CREATE TABLE IF NOT EXISTS stock_snapshots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            symbol TEXT NOT NULL,
            market TEXT NOT NULL DEFAULT 'US',
            taken_at TEXT NOT NULL,
            price REAL NOT NULL,
            value_score REAL NOT NULL,
            sentiment_score REAL NOT NULL,
            money_flow_strength REAL NOT NULL
        );
        CREATE INDEX IF NOT EXISTS stock_snapshots_symbol_date_idx ON stock_snapshots(symbol, taken_at);

        CREATE TABLE IF NOT EXISTS option_signals (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            snapshot_id INTEGER NOT NULL,
            option_type TEXT NOT NULL,
            strike REAL NOT NULL,
            expiry TEXT NOT NULL,
            notional REAL NOT NULL,
            direction TEXT NOT NULL,
            FOREIGN KEY(snapshot_id) REFERENCES stock_snapshots(id) ON DELETE CASCADE
        );
        CREATE INDEX IF NOT EXISTS option_signals_snapshot_idx ON option_signals(snapshot_id);

        CREATE TABLE IF NOT EXISTS option_combos (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            snapshot_id INTEGER NOT NULL,
            strategy TEXT NOT NULL,
            description TEXT NOT NULL,
            notional REAL NOT NULL,
            risk_profile TEXT,
            FOREIGN KEY(snapshot_id) REFERENCES stock_snapshots(id) ON DELETE CASCADE
        );
        CREATE INDEX IF NOT EXISTS option_combos_snapshot_idx ON option_combos(snapshot_id);

        CREATE TABLE IF NOT EXISTS sector_stats (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            stat_date TEXT NOT NULL,
            sector TEXT NOT NULL,
            stock_count INTEGER NOT NULL,
            avg_change REAL NOT NULL,
            total_volume REAL NOT NULL,
            leader_symbol TEXT,
            leader_change REAL,
            rank INTEGER NOT NULL
        );
        CREATE INDEX IF NOT EXISTS sector_stats_date_sector_idx ON sector_stats(stat_date, sector);
        """
        with self._connect() as conn:
            conn.executescript(schema)

    def save_snapshot(
        self,
        snapshot: SnapshotRecord,
        signals: Sequence[SignalRecord] = (),
        combos: Sequence[ComboRecord] = (),
    ) -> int:
        taken_at = snapshot.taken_at or datetime.now(timezone.utc)
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO stock_snapshots(symbol, market, taken_at, price, value_score, sentiment_score, money_flow_strength)
                    VALUES(?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        snapshot.symbol,
                        snapshot.market,
                        taken_at.isoformat(),
                        float(snapshot.price),
                        float(snapshot.value_score),
                        float(snapshot.sentiment_score),
                        float(snapshot.money_flow_strength),
                    ),
                )
                snapshot_id = int(cursor.lastrowid)

                signal_rows = [
                    (
                        snapshot_id,
                        signal.option_type,
                        float(signal.strike),
                        signal.expiry.isoformat(),
                        float(signal.notional),
                        signal.direction,
                    )
                    for signal in signals
                ]
                if signal_rows:
                    conn.executemany(
                        """
                        INSERT INTO option_signals(snapshot_id, option_type, strike, expiry, notional, direction)
                        VALUES(?, ?, ?, ?, ?, ?)
                        """,
                        signal_rows,
                    )

                combo_rows = [
                    (snapshot_id, combo.strategy, combo.description, float(combo.notional), combo.risk_profile)
                    for combo in combos
                ]
                if combo_rows:
                    conn.executemany(
                        """
                        INSERT INTO option_combos(snapshot_id, strategy, description, notional, risk_profile)
                        VALUES(?, ?, ?, ?, ?)
                        """,
                        combo_rows,
                    )
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Failed to persist snapshot for '{snapshot.symbol}': {exc}") from exc
        return snapshot_id

    def get_history(self, symbol: str) -> List[SnapshotRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, symbol, market, taken_at, price, value_score, sentiment_score, money_flow_strength
                FROM stock_snapshots
                WHERE symbol = ?
                ORDER BY taken_at ASC, id ASC
                """,
                (symbol.upper(),),
            ).fetchall()
            combos: Dict[int, List[ComboRecord]] = {}
            ids = [row["id"] for row in rows]
            if ids:
                placeholders = ",".join("?" for _ in ids)
                for combo in conn.execute(
                    f"""
                    SELECT snapshot_id, strategy, description, notional, risk_profile
                    FROM option_combos
                    WHERE snapshot_id IN ({placeholders})
                    ORDER BY id ASC
                    """,
                    ids,
                ).fetchall():
                    combos.setdefault(combo["snapshot_id"], []).append(self._row_to_combo(combo))
        return [self._row_to_snapshot(row, combos.get(row["id"], [])) for row in rows]

    def get_signals(self, snapshot_id: int) -> List[SignalRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT option_type, strike, expiry, notional, direction
                FROM option_signals
                WHERE snapshot_id = ?
                ORDER BY id ASC
                """,
                (snapshot_id,),
            ).fetchall()
        return [
            SignalRecord(
                option_type=row["option_type"],
                strike=float(row["strike"]),
                expiry=date.fromisoformat(row["expiry"]),
                notional=float(row["notional"]),
                direction=row["direction"],
            )
            for row in rows
        ]

    def replace_sector_stats(self, day: date, stats: Sequence[SectorStat]) -> None:
        rows = [
            (
                day.isoformat(),
                stat.sector,
                int(stat.stock_count),
                float(stat.avg_change),
                float(stat.total_volume),
                stat.leader_symbol,
                float(stat.leader_change),
                int(stat.rank),
            )
            for stat in stats
        ]
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM sector_stats WHERE stat_date = ?", (day.isoformat(),))
                if rows:
                    conn.executemany(
                        """
                        INSERT INTO sector_stats(stat_date, sector, stock_count, avg_change, total_volume, leader_symbol, leader_change, rank)
                        VALUES(?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        rows,
                    )
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Failed to replace sector stats for {day.isoformat()}: {exc}") from exc

    def get_sector_stats(self, since: date) -> List[SectorStat]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT stat_date, sector, stock_count, avg_change, total_volume, leader_symbol, leader_change, rank
                FROM sector_stats
                WHERE stat_date >= ?
                ORDER BY stat_date ASC, rank ASC
                """,
                (since.isoformat(),),
            ).fetchall()
        return [self._row_to_sector_stat(row) for row in rows]

    def _row_to_snapshot(self, row: sqlite3.Row, combos: Sequence[ComboRecord]) -> SnapshotRecord:
        return SnapshotRecord(
            id=row["id"],
            symbol=row["symbol"],
            market=row["market"],
            taken_at=datetime.fromisoformat(row["taken_at"]),
            price=float(row["price"]),
            value_score=float(row["value_score"]),
            sentiment_score=float(row["sentiment_score"]),
            money_flow_strength=float(row["money_flow_strength"]),
            combos=tuple(combos),
        )

    def _row_to_combo(self, row: sqlite3.Row) -> ComboRecord:
        return ComboRecord(
            strategy=row["strategy"],
            description=row["description"],
            notional=float(row["notional"]),
            risk_profile=row["risk_profile"],
        )

    def _row_to_sector_stat(self, row: sqlite3.Row) -> SectorStat:
        return SectorStat(
            date=date.fromisoformat(row["stat_date"]),
            sector=row["sector"],
            stock_count=int(row["stock_count"]),
            avg_change=float(row["avg_change"]),
            total_volume=float(row["total_volume"]),
            leader_symbol=row["leader_symbol"] or "",
            leader_change=float(row["leader_change"] or 0.0),
            rank=int(row["rank"]),
        )


__all__ = ["SQLiteStorage"]
