from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class ProviderMetrics:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    skipped_disabled: int = 0
    latency_total_ms: float = 0.0

    def avg_latency_ms(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.latency_total_ms / self.total_requests


class MetricsCollector:
    def __init__(self):
        self._per_provider: dict[str, ProviderMetrics] = {}
        self._cache_fallbacks = 0
        self._terminal_failures = 0
        self._lock = Lock()

    def _get(self, provider_id: str) -> ProviderMetrics:
        if provider_id not in self._per_provider:
            self._per_provider[provider_id] = ProviderMetrics()
        return self._per_provider[provider_id]

    def record_request(self, provider_id: str, success: bool, latency_ms: float):
        with self._lock:
            m = self._get(provider_id)
            m.total_requests += 1
            m.latency_total_ms += max(latency_ms, 0.0)
            if success:
                m.successful_requests += 1
            else:
                m.failed_requests += 1

    def record_skipped(self, provider_id: str):
        with self._lock:
            self._get(provider_id).skipped_disabled += 1

    def record_cache_fallback(self):
        with self._lock:
            self._cache_fallbacks += 1

    def record_terminal_failure(self):
        with self._lock:
            self._terminal_failures += 1

    def provider_status(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            out: dict[str, dict[str, float | int]] = {}
            for provider_id, m in self._per_provider.items():
                failure_rate = 0.0 if m.total_requests == 0 else (m.failed_requests / m.total_requests)
                out[provider_id] = {
                    "total_requests": m.total_requests,
                    "successful_requests": m.successful_requests,
                    "failed_requests": m.failed_requests,
                    "skipped_disabled": m.skipped_disabled,
                    "failure_rate": round(failure_rate, 4),
                    "average_latency_ms": round(m.avg_latency_ms(), 3),
                }
            return out

    def global_metrics(self) -> dict[str, float | int | dict]:
        per = self.provider_status()
        total_requests = sum(v["total_requests"] for v in per.values())
        weighted_latency = sum((v["average_latency_ms"] * v["total_requests"]) for v in per.values())
        average_latency = 0.0 if total_requests == 0 else (weighted_latency / total_requests)
        with self._lock:
            cache_fallbacks = self._cache_fallbacks
            terminal_failures = self._terminal_failures
        return {
            "provider_request_count": total_requests,
            "average_latency_ms": round(average_latency, 3),
            "cache_fallbacks": cache_fallbacks,
            "terminal_failures": terminal_failures,
            "per_provider": per,
        }
