"""Serialization helpers shared between the API, CLI and persistence."""

from __future__ import annotations

import math
from typing import Any, Dict

from pydantic import BaseModel

from .results import ScanResult


def _finite(value: Any) -> Any:
    """Replace non-finite floats (an infinite put/call ratio) with ``None``."""

    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: _finite(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_finite(item) for item in value]
    return value


def serialize_model(model: BaseModel) -> Dict[str, Any]:
    """Return a JSON-compatible representation of any model."""

    return _finite(model.model_dump(mode="json"))


def serialize_scan_result(result: ScanResult, include_signals: bool = True) -> Dict[str, Any]:
    """Return a JSON-compatible payload for a scan result."""

    exclude = None if include_signals else {"signals"}
    return _finite(result.model_dump(mode="json", exclude=exclude))


__all__ = ["serialize_model", "serialize_scan_result"]
