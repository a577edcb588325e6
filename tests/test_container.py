from deepticker.cache.persistence import SqlCacheBackend
from deepticker.config.settings import Settings
from deepticker.container import build_container


def test_container_orders_providers_and_applies_ttls():
    settings = Settings(provider_priority=["alpha_vantage", "yahoo", "bogus"], search_provider_priority=["yahoo"])

    container = build_container(settings)

    assert [p.provider_id for p in container.quotes.providers] == ["alpha_vantage", "yahoo"]
    assert [p.provider_id for p in container.search.providers] == ["yahoo"]
    assert container.quotes.providers[0].quote_ttl_seconds == settings.delayed_quote_ttl_seconds
    assert container.quotes.providers[1].quote_ttl_seconds == settings.realtime_quote_ttl_seconds
    assert container.portfolio.holdings() == []


def test_container_uses_durable_cache_when_configured(tmp_path):
    settings = Settings(cache_database_url=f"sqlite:///{tmp_path / 'cache.db'}")

    container = build_container(settings)

    assert isinstance(container.cache._backend, SqlCacheBackend)
