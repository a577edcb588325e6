from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    stored_at: float
    expiry_seconds: float

    def is_expired(self, now: float) -> bool:
        return (now - self.stored_at) > self.expiry_seconds

    def age(self, now: float) -> float:
        return max(now - self.stored_at, 0.0)


class CacheBackend(Protocol):
    def load_all(self) -> dict[str, CacheEntry]:
        ...

    def save(self, key: str, entry: CacheEntry) -> None:
        ...

    def delete(self, keys: list[str]) -> None:
        ...


class QuoteCache:
    """
    Key/value store with per-entry expiry.

    Expired entries are not removed on read: ``get`` ignores them, while
    ``get_entry(..., allow_expired=True)`` still serves them as a last resort.
    ``sweep_expired`` deletes them in the background.
    """

    def __init__(self, backend: CacheBackend | None = None, clock: Callable[[], float] = time.time):
        self._store: dict[str, CacheEntry] = {}
        self._hits = 0
        self._stale_hits = 0
        self._misses = 0
        self._lock = Lock()
        self._clock = clock
        self._backend = backend
        if backend is not None:
            self._store.update(backend.load_all())
            logger.info("Cache warmed from durable backend", extra={"entries": len(self._store)})

    def now(self) -> float:
        return self._clock()

    def get_entry(self, key: str, allow_expired: bool = False) -> CacheEntry | None:
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if not entry:
                self._misses += 1
                return None
            if entry.is_expired(now):
                if not allow_expired:
                    self._misses += 1
                    return None
                self._stale_hits += 1
                return entry
            self._hits += 1
            return entry

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return entry.value if entry else None

    def set(self, key: str, value: Any, expiry_seconds: float) -> CacheEntry:
        entry = CacheEntry(value=value, stored_at=self._clock(), expiry_seconds=expiry_seconds)
        with self._lock:
            self._store[key] = entry
        if self._backend is not None:
            self._backend.save(key, entry)
        return entry

    def remove(self, key: str):
        with self._lock:
            removed = self._store.pop(key, None)
        if removed is not None and self._backend is not None:
            self._backend.delete([key])

    def sweep_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
            for key in expired:
                del self._store[key]
        if expired and self._backend is not None:
            self._backend.delete(expired)
        return len(expired)

    def clear(self):
        with self._lock:
            keys = list(self._store)
            self._store.clear()
            self._hits = self._stale_hits = self._misses = 0
        if keys and self._backend is not None:
            self._backend.delete(keys)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def metrics(self) -> dict[str, int]:
        with self._lock:
            return {
                "hits": self._hits,
                "stale_hits": self._stale_hits,
                "misses": self._misses,
                "size": len(self._store),
            }


def quote_key(symbol: str) -> str:
    return f"quote:{symbol.upper()}"


def search_key(query: str) -> str:
    return f"search:{query.strip().lower()}"
