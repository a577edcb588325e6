"""
Wiring for the process-wide service instances.

``build_container`` is called once at startup; routes reach the services
through ``app.state.container`` and tests build containers around fakes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from deepticker.cache.persistence import SqlCacheBackend
from deepticker.cache.quote_cache import QuoteCache
from deepticker.config.secrets import SecretStore, SettingsSecretStore
from deepticker.config.settings import Settings
from deepticker.database import create_session_factory
from deepticker.internal_metrics import MetricsCollector
from deepticker.observability import RuntimeObservability
from deepticker.portfolio import PortfolioStore
from deepticker.provider_health import ProviderHealthTracker
from deepticker.providers.alpha_vantage import AlphaVantageProvider
from deepticker.providers.base import QuoteProvider
from deepticker.providers.rapidapi import RapidApiYahooProvider
from deepticker.providers.transport import HttpTransport
from deepticker.providers.yahoo import YahooChartProvider
from deepticker.services.quote_refresh_service import QuoteRefreshService
from deepticker.services.search_debouncer import SearchDebouncer
from deepticker.services.symbol_search_service import SymbolSearchService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    cache: QuoteCache
    health: ProviderHealthTracker
    quotes: QuoteRefreshService
    search: SymbolSearchService
    debouncer: SearchDebouncer
    portfolio: PortfolioStore
    metrics: MetricsCollector
    observability: RuntimeObservability = field(default_factory=RuntimeObservability)


def build_providers(settings: Settings, secrets: SecretStore, transport: HttpTransport | None = None) -> dict[str, QuoteProvider]:
    transport = transport or HttpTransport()
    return {
        "yahoo": YahooChartProvider(settings.realtime_quote_ttl_seconds, transport=transport),
        "rapidapi": RapidApiYahooProvider(
            settings.realtime_quote_ttl_seconds,
            host=settings.rapidapi_host,
            transport=transport,
            secrets=secrets,
        ),
        "alpha_vantage": AlphaVantageProvider(settings.delayed_quote_ttl_seconds, transport=transport, secrets=secrets),
    }


def _ordered(available: dict[str, QuoteProvider], priority: Sequence[str]) -> list[QuoteProvider]:
    ordered = []
    for provider_id in priority:
        if provider_id not in available:
            logger.warning(f"Unknown provider in priority list: {provider_id}")
            continue
        ordered.append(available[provider_id])
    return ordered


def build_container(
    settings: Settings,
    providers: dict[str, QuoteProvider] | None = None,
    cache: QuoteCache | None = None,
    health: ProviderHealthTracker | None = None,
    secrets: SecretStore | None = None,
) -> ServiceContainer:
    available = providers if providers is not None else build_providers(settings, secrets or SettingsSecretStore(settings))

    if cache is None:
        backend = None
        if settings.cache_database_url:
            backend = SqlCacheBackend(create_session_factory(settings.cache_database_url))
        cache = QuoteCache(backend=backend)
    health = health or ProviderHealthTracker(cooldown_seconds=settings.provider_cooldown_seconds)
    metrics = MetricsCollector()

    quote_providers = _ordered(available, settings.provider_priority)
    quotes = QuoteRefreshService(
        quote_providers,
        cache,
        health,
        request_timeout_seconds=settings.request_timeout_seconds,
        retry_attempts=settings.retry_attempts,
        retry_backoff_base_seconds=settings.retry_backoff_base_seconds,
        metrics=metrics,
    )
    search = SymbolSearchService(
        _ordered(available, settings.search_provider_priority),
        cache,
        health,
        request_timeout_seconds=settings.request_timeout_seconds,
        cache_ttl_seconds=settings.search_ttl_seconds,
        max_results=settings.search_max_results,
        quote_providers=quote_providers,
    )
    return ServiceContainer(
        settings=settings,
        cache=cache,
        health=health,
        quotes=quotes,
        search=search,
        debouncer=SearchDebouncer(search, delay_seconds=settings.search_debounce_seconds),
        portfolio=PortfolioStore(quotes),
        metrics=metrics,
    )
