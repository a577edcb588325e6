"""Process-level runtime status: uptime, per-route request timing and the cache sweep heartbeat."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from threading import Lock
from time import perf_counter
from typing import Optional


@dataclass
class RouteTiming:
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def add(self, elapsed_ms: float):
        self.count += 1
        self.total_ms += elapsed_ms
        self.last_ms = elapsed_ms
        self.max_ms = max(self.max_ms, elapsed_ms)

    def summary(self) -> dict[str, float | int]:
        average = self.total_ms / self.count if self.count else 0.0
        return {
            "request_count": self.count,
            "average_ms": round(average, 3),
            "max_ms": round(self.max_ms, 3),
            "last_ms": round(self.last_ms, 3),
        }


@dataclass
class SweepHeartbeat:
    at: Optional[datetime] = None
    removed: int = 0
    total_removed: int = 0
    passes: int = 0


class RuntimeObservability:
    def __init__(self):
        self.process_started_at = datetime.now(timezone.utc)
        self._all = RouteTiming()
        self._routes: dict[str, RouteTiming] = {}
        self._sweep = SweepHeartbeat()
        self._lock = Lock()

    def mark_cache_sweep(self, removed: int, timestamp: Optional[datetime] = None):
        at = (timestamp or datetime.now(timezone.utc)).astimezone(timezone.utc)
        with self._lock:
            self._sweep.at = at
            self._sweep.removed = removed
            self._sweep.total_removed += removed
            self._sweep.passes += 1

    @property
    def last_swept_entries(self) -> int:
        return self._sweep.removed

    def seconds_since_last_sweep(self) -> Optional[float]:
        if self._sweep.at is None:
            return None
        return max((datetime.now(timezone.utc) - self._sweep.at).total_seconds(), 0.0)

    def sweep_status(self) -> dict:
        with self._lock:
            status = asdict(self._sweep)
        status["at"] = status["at"].isoformat() if status["at"] else None
        return status

    def mark_request_timing(self, elapsed_ms: float, route: str | None = None):
        with self._lock:
            self._all.add(elapsed_ms)
            if route:
                self._routes.setdefault(route, RouteTiming()).add(elapsed_ms)

    def request_metrics(self) -> dict:
        """Aggregate timing plus a ``routes`` breakdown, ready for JSON."""
        with self._lock:
            output = self._all.summary()
            output["routes"] = {route: timing.summary() for route, timing in sorted(self._routes.items())}
        return output

    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.process_started_at).total_seconds()


class RequestTimer:
    def __init__(self):
        self._started = perf_counter()

    def elapsed_ms(self) -> float:
        return (perf_counter() - self._started) * 1000
