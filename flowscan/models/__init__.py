from .market import (
    DollarSnapshot,
    EnhancedSectorTrends,
    IndexSnapshot,
    MacroSnapshot,
    MoverView,
    ScoreBreakdown,
    SectorStat,
    SectorTrend,
    SectorTrendPoint,
    TrendSignal,
    ValueScore,
    VolatilitySnapshot,
)
from .results import (
    ActivityDaySignal,
    ComboSummary,
    ExtendedSentiment,
    OptionsActivity,
    ScanError,
    ScanResult,
    SentimentSnapshot,
)
from .serialization import serialize_model, serialize_scan_result
from .signal import (
    OptionSignal,
    OptionType,
    SpotConfirmation,
    TenorBucket,
    TradeDirection,
    TraderType,
)

__all__ = [
    "ActivityDaySignal",
    "ComboSummary",
    "DollarSnapshot",
    "EnhancedSectorTrends",
    "ExtendedSentiment",
    "IndexSnapshot",
    "MacroSnapshot",
    "MoverView",
    "OptionSignal",
    "OptionType",
    "OptionsActivity",
    "ScanError",
    "ScanResult",
    "ScoreBreakdown",
    "SectorStat",
    "SectorTrend",
    "SectorTrendPoint",
    "SentimentSnapshot",
    "SpotConfirmation",
    "TenorBucket",
    "TradeDirection",
    "TraderType",
    "TrendSignal",
    "ValueScore",
    "VolatilitySnapshot",
    "serialize_model",
    "serialize_scan_result",
]
