"""Base definitions for storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Sequence

from flowscan.models.market import SectorStat


class StorageError(RuntimeError):
    """Raised when a storage backend encounters an unrecoverable error."""


@dataclass(frozen=True)
class SignalRecord:
    """Persisted view of one option signal."""

    option_type: str
    strike: float
    expiry: date
    notional: float
    direction: str


@dataclass(frozen=True)
class ComboRecord:
    strategy: str
    description: str
    notional: float
    risk_profile: Optional[str] = None


@dataclass(frozen=True)
class SnapshotRecord:
    """One scan of a symbol. Rows are never updated after they are written."""

    symbol: str
    market: str
    price: float
    value_score: float
    sentiment_score: float
    money_flow_strength: float
    taken_at: Optional[datetime] = None
    id: Optional[int] = None
    combos: Sequence[ComboRecord] = field(default_factory=tuple)
    signals: Sequence[SignalRecord] = field(default_factory=tuple)


class Storage(ABC):
    """Abstract base class for persistence backends."""

    @abstractmethod
    def save_snapshot(
        self,
        snapshot: SnapshotRecord,
        signals: Sequence[SignalRecord] = (),
        combos: Sequence[ComboRecord] = (),
    ) -> int:
        """Persist a snapshot with its child rows in one transaction; return its id."""

    @abstractmethod
    def get_history(self, symbol: str) -> List[SnapshotRecord]:
        """Return snapshots for ``symbol`` oldest first, with their combos attached."""

    @abstractmethod
    def replace_sector_stats(self, day: date, stats: Sequence[SectorStat]) -> None:
        """Replace every sector row for ``day`` with ``stats``."""

    @abstractmethod
    def get_sector_stats(self, since: date) -> List[SectorStat]:
        """Return sector rows dated on or after ``since``, oldest first."""


__all__ = [
    "ComboRecord",
    "SignalRecord",
    "SnapshotRecord",
    "Storage",
    "StorageError",
]
