import asyncio

import pytest

from deepticker.cache.quote_cache import QuoteCache
from deepticker.domain import Quote, SymbolMatch
from deepticker.errors import ProviderError, ProviderErrorKind
from deepticker.provider_health import ProviderHealthTracker
from deepticker.providers.base import QuoteProvider


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeProvider(QuoteProvider):
    """
    Scripted provider. ``quotes`` maps a symbol to a list of steps; each call
    consumes one step (the last one repeats). A step is a price, a
    ``ProviderErrorKind`` to raise, or any exception instance to raise as is.
    """

    def __init__(self, provider_id, quotes=None, search=None, quote_ttl_seconds=300, delay=0.0, delays=None):
        super().__init__(quote_ttl_seconds)
        self.provider_id = provider_id
        self.script = {symbol.upper(): list(steps) for symbol, steps in (quotes or {}).items()}
        self.search_result = search
        self.delay = delay
        self.delays = {symbol.upper(): seconds for symbol, seconds in (delays or {}).items()}
        self.calls = []
        self.search_calls = []

    async def fetch_quote(self, symbol, timeout):
        self.calls.append(symbol)
        delay = self.delays.get(symbol.upper(), self.delay)
        if delay:
            await asyncio.sleep(delay)
        steps = self.script.get(symbol.upper())
        if not steps:
            raise ProviderError(ProviderErrorKind.NOT_FOUND, f"{symbol} not scripted", provider_id=self.provider_id)
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, ProviderErrorKind):
            raise ProviderError(step, provider_id=self.provider_id)
        if isinstance(step, Exception):
            raise step
        return Quote(symbol=symbol, price=step, previous_close=step - 1, source=self.provider_id)

    async def search_symbols(self, query, timeout):
        self.search_calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.search_result, ProviderErrorKind):
            raise ProviderError(self.search_result, provider_id=self.provider_id)
        if isinstance(self.search_result, Exception):
            raise self.search_result
        return [
            SymbolMatch(symbol=symbol, name=name, source=self.provider_id)
            for symbol, name in (self.search_result or [])
        ]


class FakeTransport:
    """Stands in for ``HttpTransport``; returns a canned payload or raises a canned error."""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = []

    def get_json(self, url, params=None, headers=None, timeout=8.0):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QuoteCache(clock=clock)


@pytest.fixture
def health(clock):
    return ProviderHealthTracker(cooldown_seconds=600, clock=clock)
