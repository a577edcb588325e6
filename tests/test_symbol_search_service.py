import pytest

from conftest import FakeProvider
from deepticker.cache.quote_cache import search_key
from deepticker.domain import SymbolMatch
from deepticker.errors import ProviderErrorKind
from deepticker.services.symbol_search_service import SymbolSearchService


def make_service(providers, cache, health, **kwargs):
    kwargs.setdefault("request_timeout_seconds", 1.0)
    return SymbolSearchService(providers, cache, health, **kwargs)


@pytest.mark.asyncio
async def test_blank_query_returns_nothing_without_calls(cache, health):
    provider = FakeProvider("yahoo", search=[("AAPL", "Apple Inc.")])
    service = make_service([provider], cache, health)

    assert await service.search("   ") == []
    assert provider.search_calls == []


@pytest.mark.asyncio
async def test_empty_result_falls_through_to_next_provider(cache, health):
    a = FakeProvider("alpha_vantage", search=[])
    b = FakeProvider("yahoo", search=[("AAPL", "Apple Inc.")])
    service = make_service([a, b], cache, health)

    results = await service.search("Apple")

    assert [(m.symbol, m.name) for m in results] == [("AAPL", "Apple Inc.")]
    assert results[0].source == "yahoo"
    assert cache.get(search_key("apple")) == results


@pytest.mark.asyncio
async def test_results_are_truncated(cache, health):
    many = [(f"SYM{i}", f"Name {i}") for i in range(20)]
    service = make_service([FakeProvider("yahoo", search=many)], cache, health, max_results=5)

    results = await service.search("sym")

    assert len(results) == 5


@pytest.mark.asyncio
async def test_each_provider_gets_a_single_attempt(cache, health):
    flaky = FakeProvider("alpha_vantage", search=ProviderErrorKind.TIMEOUT)
    backup = FakeProvider("yahoo", search=[("MSFT", "Microsoft")])
    service = make_service([flaky, backup], cache, health)

    results = await service.search("micro")

    assert results[0].symbol == "MSFT"
    assert flaky.search_calls == ["micro"]


@pytest.mark.asyncio
async def test_rate_limited_search_disables_provider(cache, health):
    limited = FakeProvider("alpha_vantage", search=ProviderErrorKind.RATE_LIMITED)
    backup = FakeProvider("yahoo", search=[("MSFT", "Microsoft")])
    service = make_service([limited, backup], cache, health)

    await service.search("micro")
    await service.search("apple")

    assert not health.is_enabled("alpha_vantage")
    assert limited.search_calls == ["micro"]


@pytest.mark.asyncio
async def test_unexpected_search_exception_moves_to_next_provider(cache, health):
    broken = FakeProvider("alpha_vantage", search=RuntimeError("boom"))
    backup = FakeProvider("yahoo", search=[("MSFT", "Microsoft")])
    service = make_service([broken, backup], cache, health)

    results = await service.search("micro")

    assert [r.symbol for r in results] == ["MSFT"]
    assert health.is_enabled("alpha_vantage")


@pytest.mark.asyncio
async def test_cached_results_are_served_when_providers_fail(cache, health, clock):
    cached = [SymbolMatch(symbol="AAPL", name="Apple Inc.", source="yahoo")]
    cache.set(search_key("apple"), cached, 3600)
    clock.advance(7200)
    service = make_service([FakeProvider("yahoo", search=ProviderErrorKind.MALFORMED_RESPONSE)], cache, health)

    assert await service.search("Apple") == cached


@pytest.mark.asyncio
async def test_ticker_like_query_is_validated_with_a_quote(cache, health):
    searcher = FakeProvider("alpha_vantage", search=[])
    quoter = FakeProvider("yahoo", {"BRK.B": [410.0]}, search=[])
    service = make_service([searcher], cache, health, quote_providers=[quoter])

    results = await service.search("brk.b")

    assert results == [SymbolMatch(symbol="BRK.B", name="BRK.B", source="yahoo")]
    assert quoter.calls == ["BRK.B"]


@pytest.mark.asyncio
async def test_free_text_without_results_is_empty(cache, health):
    quoter = FakeProvider("yahoo", {}, search=[])
    service = make_service([quoter], cache, health)

    assert await service.search("apple computer company") == []
    assert quoter.calls == []
