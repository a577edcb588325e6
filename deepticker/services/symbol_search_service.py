from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from deepticker.cache.quote_cache import QuoteCache, search_key
from deepticker.domain import SymbolMatch
from deepticker.errors import ProviderError
from deepticker.provider_health import ProviderHealthTracker
from deepticker.providers.base import QuoteProvider
from deepticker.utils.symbol_normalizer import looks_like_ticker

logger = logging.getLogger(__name__)


class SymbolSearchService:
    """
    Free-text symbol search across providers.

    Search is advisory, so each provider gets exactly one attempt. When no
    provider returns anything, previously cached results for the query are
    used, and a ticker-looking query is finally checked with a direct quote
    fetch so that known symbols the search endpoints index poorly still resolve.
    """

    def __init__(
        self,
        providers: Sequence[QuoteProvider],
        cache: QuoteCache,
        health: ProviderHealthTracker,
        request_timeout_seconds: float = 8.0,
        cache_ttl_seconds: float = 3600,
        max_results: int = 10,
        quote_providers: Sequence[QuoteProvider] | None = None,
    ):
        self.providers = list(providers)
        self.quote_providers = list(quote_providers) if quote_providers is not None else self.providers
        self.cache = cache
        self.health = health
        self.request_timeout_seconds = request_timeout_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_results = max_results

    def _enabled(self, provider: QuoteProvider) -> bool:
        self.health.check_and_maybe_reenable(provider.provider_id)
        return self.health.is_enabled(provider.provider_id)

    async def _single_attempt(self, provider: QuoteProvider, call, timeout: float):
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError:
            logger.info(f"{provider.provider_id} search timed out after {timeout}s")
        except ProviderError as exc:
            if exc.systemic:
                self.health.record_failure(provider.provider_id, exc.kind)
            logger.info(f"{provider.provider_id} search failed: {exc.kind.value}")
        except Exception as exc:
            logger.warning(f"{provider.provider_id} search raised unexpectedly: {exc!r}", exc_info=True)
        return None

    async def search(self, query: str, timeout: float | None = None) -> list[SymbolMatch]:
        query = (query or "").strip()
        if not query:
            return []
        timeout = timeout if timeout is not None else self.request_timeout_seconds

        for provider in self.providers:
            if not self._enabled(provider):
                continue
            results = await self._single_attempt(provider, provider.search_symbols(query, timeout), timeout)
            if results:
                results = results[: self.max_results]
                self.health.record_success(provider.provider_id)
                self.cache.set(search_key(query), results, self.cache_ttl_seconds)
                return results

        cached = self.cache.get_entry(search_key(query), allow_expired=True)
        if cached is not None and cached.value:
            logger.info(f"Serving cached search results for {query!r}")
            return cached.value

        if looks_like_ticker(query):
            return await self._validate_as_symbol(query, timeout)
        return []

    async def _validate_as_symbol(self, query: str, timeout: float) -> list[SymbolMatch]:
        symbol = query.upper()
        for provider in self.quote_providers:
            if not self._enabled(provider):
                continue
            quote = await self._single_attempt(provider, provider.fetch_quote(symbol, timeout), timeout)
            if quote is not None:
                logger.info(f"Validated {symbol} as a symbol via {provider.provider_id}")
                return [SymbolMatch(symbol=symbol, name=symbol, source=provider.provider_id)]
        return []
