"""Environment aware configuration loader for the flow scanner."""

from __future__ import annotations

import copy
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from flowscan.adapters.retry import RetryPolicy
from flowscan.scoring.config import DEFAULT_HEDGE_CONFIG, DEFAULT_VALUE_CONFIG

DEFAULT_SETTINGS: Dict[str, Any] = {
    "watchlists": {
        "default": ["SPY", "QQQ", "AAPL", "NVDA", "TSLA"],
    },
    "adapter": {
        "provider": "yfinance",
        "timeout_seconds": 30,
        "settings": {},
    },
    "retry": {
        "max_attempts": 3,
        "delay": 0.75,
        "backoff": "linear",
        "factor": 2.0,
        "max_delay": 4.0,
        "jitter": 0.3,
    },
    "cache": {
        "movers_ttl": 300,
        "value_ttl": 1800,
        "options_ttl": 60,
        "macro_ttl": 300,
    },
    "storage": {
        "backend": "sqlite",
        "sqlite": {
            "path": "data/flowscan.db",
            "pragmas": {},
        },
    },
    "scan": {},
    "combos": {},
    "sentiment": {},
    "hedge": copy.deepcopy(DEFAULT_HEDGE_CONFIG),
    "value": copy.deepcopy(DEFAULT_VALUE_CONFIG),
    "prefilter": {},
    "batch": {},
}

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
ENVIRONMENT_VARIABLE = "APP_ENV"


class ScanSettings(BaseModel):
    """Contract gates, OTM bands and tenor cut-offs used by the classifier."""

    model_config = ConfigDict(frozen=True)

    min_volume: float = 1000
    min_notional: float = 200_000
    min_notional_no_ratio: float = 400_000
    min_ratio: float = 1.0
    call_otm_min: float = 1.05
    call_band_max: float = 1.6
    put_otm_max: float = 0.95
    put_band_min: float = 0.4
    deep_otm_put_cut: float = 0.85
    short_term_days: int = 14
    long_term_days: int = 90
    large_otm_call_threshold: float = 1_000_000
    regular_fresh_window_mins: int = 60
    non_regular_fresh_window_mins: int = 4320
    max_expiry_days: int = 30
    limit_expirations: Optional[int] = None
    money_flow_days: int = 7

    @field_validator("regular_fresh_window_mins", "non_regular_fresh_window_mins")
    @classmethod
    def _at_least_one_minute(cls, value: int) -> int:
        return max(1, int(value))

    @property
    def effective_put_band_min(self) -> float:
        return max(0.1, min(self.put_otm_max, self.put_band_min))


class ComboSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_window_min: float = 10
    notional_ratio_tol: float = 1.5
    strike_pct_tol: float = 0.05

    @property
    def time_window_tiers(self) -> List[float]:
        base = self.time_window_min
        return [base, base * 3, base * 6]


class ThresholdPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["static", "capratio"] = "static"
    cap_ratio: float = 2e-6
    cap_min: float = 200_000
    cap_max: float = 5_000_000
    static_min_bullish: Optional[float] = None


class SentimentSettings(BaseModel):
    """Decay, window and aggregation policy for the extended sentiment."""

    model_config = ConfigDict(frozen=True)

    window_mins: float = 60
    half_life_mins: float = 120
    min_bullish_window_notional: float = 1_000_000
    alpha: float = 0.5
    aggregation_policy: Literal["standard", "buyersOnly", "buyersOnlyAuxSP"] = "standard"
    aux_short_put_weight: float = 0.35
    threshold_policy: Optional[ThresholdPolicy] = None

    @field_validator("alpha", "aux_short_put_weight")
    @classmethod
    def _clamp_unit(cls, value: float) -> float:
        return max(0.0, min(1.0, float(value)))


class PrefilterSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    min_volume: float = 5_000_000
    min_change_percent: float = 3.0
    earnings_within_days: int = 7
    always_include: List[str] = Field(default_factory=lambda: ["SPY", "QQQ", "IWM"])
    max_symbols: int = 80
    batch_size: int = 20


class BatchSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    movers_per_type: int = 20
    symbol_delay_seconds: float = 2.0
    sector_movers: int = 50
    china_movers: int = 20


class AdapterSettings(BaseModel):
    provider: str = "yfinance"
    timeout_seconds: float = 30
    settings: Dict[str, Any] = Field(default_factory=dict)


class RetrySettings(BaseModel):
    max_attempts: int = 3
    delay: float = 0.75
    backoff: Literal["linear", "exponential"] = "linear"
    factor: float = 2.0
    max_delay: float = 4.0
    jitter: float = 0.3

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(**self.model_dump())


class CacheSettings(BaseModel):
    movers_ttl: int = 300
    value_ttl: int = 1800
    options_ttl: int = 60
    macro_ttl: int = 300


class SQLiteSettings(BaseModel):
    path: str = "data/flowscan.db"
    pragmas: Dict[str, Any] = Field(default_factory=dict)


class StorageSettings(BaseModel):
    backend: str = "sqlite"
    sqlite: SQLiteSettings = Field(default_factory=SQLiteSettings)

    def require_sqlite(self) -> SQLiteSettings:
        if self.backend != "sqlite":
            raise ValueError(f"Unsupported storage backend: {self.backend}")
        return self.sqlite


class AppSettings(BaseModel):
    """Fully resolved application settings loaded from YAML."""

    model_config = ConfigDict(frozen=True)

    env: str
    watchlists: Dict[str, List[str]]
    adapter: AdapterSettings
    retry: RetrySettings
    cache: CacheSettings
    storage: StorageSettings
    scan: ScanSettings
    combos: ComboSettings
    sentiment: SentimentSettings
    hedge: Dict[str, Any]
    value: Dict[str, Any]
    prefilter: PrefilterSettings
    batch: BatchSettings

    @field_validator("env")
    @classmethod
    def _normalize_env(cls, value: str) -> str:
        return value.lower()

    @field_validator("watchlists", mode="before")
    @classmethod
    def _coerce_watchlists(cls, value: Mapping[str, Any]) -> Dict[str, List[str]]:
        return {key: list(items or []) for key, items in dict(value or {}).items()}

    def get_watchlist(self, name: str = "default") -> List[str]:
        return list(self.watchlists.get(name, []))


def _deep_merge(base: MutableMapping[str, Any], overrides: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping):
            existing = base.get(key)
            if isinstance(existing, MutableMapping):
                base[key] = _deep_merge(copy.deepcopy(existing), value)
            else:
                base[key] = copy.deepcopy(value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle.read()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping at the root.")
        return data


def _build_settings(env: str) -> AppSettings:
    config_path = CONFIG_DIR / f"{env}.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file for environment '{env}' not found at {config_path}")

    merged = copy.deepcopy(DEFAULT_SETTINGS)
    overrides = _load_yaml(config_path)
    merged = _deep_merge(merged, overrides)
    merged["env"] = env
    return AppSettings.model_validate(merged)


@lru_cache(maxsize=None)
def _cached_settings(env: str) -> AppSettings:
    return _build_settings(env)


def get_settings(env: Optional[str] = None) -> AppSettings:
    """Load settings for the requested environment (default: APP_ENV or 'dev')."""

    resolved_env = (env or os.getenv(ENVIRONMENT_VARIABLE, "dev")).strip().lower()
    return _cached_settings(resolved_env)


def reset_settings_cache() -> None:
    """Clear the cached settings, primarily used during tests."""

    _cached_settings.cache_clear()


__all__ = [
    "AdapterSettings",
    "AppSettings",
    "BatchSettings",
    "CacheSettings",
    "ComboSettings",
    "PrefilterSettings",
    "RetrySettings",
    "SQLiteSettings",
    "ScanSettings",
    "SentimentSettings",
    "StorageSettings",
    "ThresholdPolicy",
    "get_settings",
    "reset_settings_cache",
]
