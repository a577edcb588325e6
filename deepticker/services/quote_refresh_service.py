"""
Multi-source quote resolution.

Each symbol walks the configured providers in priority order, retrying
transient faults with exponential backoff, and falls back to the last cached
quote (fresh or not) when every provider has failed.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence

from deepticker.cache.quote_cache import QuoteCache, quote_key
from deepticker.domain import CACHE_SOURCE, Quote
from deepticker.errors import AllSourcesFailedError, NoSymbolsError, ProviderError, ProviderErrorKind
from deepticker.internal_metrics import MetricsCollector
from deepticker.provider_health import ProviderHealthTracker
from deepticker.providers.base import QuoteProvider

logger = logging.getLogger(__name__)


@dataclass
class RefreshOutcome:
    """Result for one symbol of a refresh: a quote, or the terminal error."""

    symbol: str
    quote: Optional[Quote] = None
    error: Optional[AllSourcesFailedError] = None
    from_cache: bool = False
    stale: bool = False
    attempts: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.quote is not None

    def unwrap(self) -> Quote:
        if self.quote is None:
            raise self.error or AllSourcesFailedError(self.symbol, self.attempts)
        return self.quote


class QuoteRefreshService:
    def __init__(
        self,
        providers: Sequence[QuoteProvider],
        cache: QuoteCache,
        health: ProviderHealthTracker,
        request_timeout_seconds: float = 8.0,
        retry_attempts: int = 2,
        retry_backoff_base_seconds: float = 0.5,
        metrics: MetricsCollector | None = None,
    ):
        self.providers = list(providers)
        self.cache = cache
        self.health = health
        self.request_timeout_seconds = request_timeout_seconds
        self.retry_attempts = max(retry_attempts, 0)
        self.retry_backoff_base_seconds = retry_backoff_base_seconds
        self.metrics = metrics or MetricsCollector()
        self.last_source: Optional[str] = None
        self.last_refreshed_at: Optional[datetime] = None

    async def refresh(self, symbols: Sequence[str], timeout: float | None = None) -> dict[str, RefreshOutcome]:
        cleaned = list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))
        if not cleaned:
            raise NoSymbolsError()
        timeout = timeout if timeout is not None else self.request_timeout_seconds
        outcomes = await asyncio.gather(*(self._resolve(symbol, timeout) for symbol in cleaned))
        return {outcome.symbol: outcome for outcome in outcomes}

    async def get_quote(self, symbol: str, timeout: float | None = None) -> Quote:
        outcomes = await self.refresh([symbol], timeout=timeout)
        return next(iter(outcomes.values())).unwrap()

    async def _resolve(self, symbol: str, timeout: float) -> RefreshOutcome:
        attempts: list[tuple[str, str]] = []
        for provider in self.providers:
            pid = provider.provider_id
            self.health.check_and_maybe_reenable(pid)
            if not self.health.is_enabled(pid):
                logger.debug(f"Skipping disabled provider {pid} for {symbol}")
                self.metrics.record_skipped(pid)
                attempts.append((pid, "disabled"))
                continue

            quote = await self._try_provider(provider, symbol, timeout, attempts)
            if quote is None:
                continue

            self.cache.set(quote_key(symbol), quote, provider.quote_ttl_seconds)
            self.health.record_success(pid)
            self.last_source = pid
            self.last_refreshed_at = datetime.now(timezone.utc)
            return RefreshOutcome(symbol=symbol, quote=quote, attempts=attempts)

        return self._from_cache(symbol, attempts)

    async def _try_provider(
        self,
        provider: QuoteProvider,
        symbol: str,
        timeout: float,
        attempts: list[tuple[str, str]],
    ) -> Quote | None:
        pid = provider.provider_id
        for attempt in range(self.retry_attempts + 1):
            started = time.perf_counter()
            try:
                quote = await asyncio.wait_for(provider.fetch_quote(symbol, timeout), timeout)
            except asyncio.TimeoutError:
                error = ProviderError(ProviderErrorKind.TIMEOUT, f"no answer within {timeout}s", provider_id=pid)
            except ProviderError as exc:
                error = exc
            except Exception as exc:
                logger.warning(f"{pid} raised unexpectedly for {symbol}: {exc!r}", exc_info=True)
                error = ProviderError(
                    ProviderErrorKind.MALFORMED_RESPONSE,
                    f"unexpected {type(exc).__name__}: {exc}",
                    provider_id=pid,
                )
            else:
                self.metrics.record_request(pid, success=True, latency_ms=(time.perf_counter() - started) * 1000)
                return quote

            self.metrics.record_request(pid, success=False, latency_ms=(time.perf_counter() - started) * 1000)
            attempts.append((pid, error.kind.value))

            if error.systemic:
                self.health.record_failure(pid, error.kind)
                logger.warning(f"{pid} unavailable for {symbol}: {error.message}")
                return None
            if not error.retryable:
                self.health.record_failure(pid, error.kind)
                logger.info(f"{pid} has no quote for {symbol}: {error.kind.value}")
                return None
            if attempt >= self.retry_attempts:
                self.health.record_failure(pid, error.kind)
                logger.info(f"{pid} gave up on {symbol} after {attempt + 1} attempts: {error.kind.value}")
                return None

            delay = self.retry_backoff_base_seconds * (2 ** attempt)
            logger.debug(f"{pid} {error.kind.value} for {symbol}, retrying in {delay:.2f}s")
            await asyncio.sleep(delay)
        return None

    def _from_cache(self, symbol: str, attempts: list[tuple[str, str]]) -> RefreshOutcome:
        entry = self.cache.get_entry(quote_key(symbol), allow_expired=True)
        if entry is None:
            self.metrics.record_terminal_failure()
            logger.error(f"All sources failed for {symbol}", extra={"symbol": symbol, "attempts": attempts})
            return RefreshOutcome(
                symbol=symbol,
                error=AllSourcesFailedError(symbol, attempts),
                attempts=attempts,
            )

        stale = entry.is_expired(self.cache.now())
        cached = entry.value.model_copy(
            update={"source": CACHE_SOURCE, "timestamp": datetime.fromtimestamp(entry.stored_at, tz=timezone.utc)}
        )
        self.metrics.record_cache_fallback()
        self.last_source = CACHE_SOURCE
        self.last_refreshed_at = datetime.now(timezone.utc)
        logger.warning(
            f"Serving cached quote for {symbol}",
            extra={"symbol": symbol, "stale": stale, "age_seconds": round(entry.age(self.cache.now()), 1)},
        )
        return RefreshOutcome(symbol=symbol, quote=cached, from_cache=True, stale=stale, attempts=attempts)

    def status(self) -> dict:
        return {
            "providers": [p.provider_id for p in self.providers],
            "last_source": self.last_source,
            "last_refreshed_at": self.last_refreshed_at.isoformat() if self.last_refreshed_at else None,
        }
