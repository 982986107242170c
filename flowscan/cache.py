"""Time based caches injected into services that memoise provider results."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple


class Cache(Protocol):
    """Minimal cache contract: values expire ``ttl`` seconds after they are set."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ...

    def ttl(self, key: str) -> Optional[float]:
        """Seconds left before ``key`` expires, or ``None`` when it is absent."""
        ...


def cache_key(prefix: str, *parts: Any) -> str:
    """Build a namespaced key such as ``value:AAPL``."""

    return ":".join([prefix, *(str(part) for part in parts)])


class InMemoryTTLCache:
    """Thread-safe in-process TTL cache with an injectable clock."""

    def __init__(self, default_ttl: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        lifetime = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (self._clock() + lifetime, value)

    def ttl(self, key: str) -> Optional[float]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            remaining = entry[0] - self._clock()
            if remaining <= 0:
                del self._entries[key]
                return None
            return remaining

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["Cache", "InMemoryTTLCache", "cache_key"]
