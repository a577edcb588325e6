from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from pydantic import ValidationError

from deepticker.config.secrets import SecretStore
from deepticker.domain import Quote, SymbolMatch
from deepticker.errors import ProviderError, ProviderErrorKind
from deepticker.providers.transport import HttpTransport


class QuoteProvider(ABC):
    """
    One upstream market data source.

    Adapters translate a provider payload into ``Quote``/``SymbolMatch`` values
    and every failure into a ``ProviderError``. They do not read or write the
    cache and do not report to the health tracker.
    """

    provider_id: str = ""

    def __init__(
        self,
        quote_ttl_seconds: float,
        transport: HttpTransport | None = None,
        secrets: SecretStore | None = None,
    ):
        self.quote_ttl_seconds = quote_ttl_seconds
        self.transport = transport or HttpTransport()
        self.secrets = secrets

    @abstractmethod
    async def fetch_quote(self, symbol: str, timeout: float) -> Quote:
        raise NotImplementedError

    @abstractmethod
    async def search_symbols(self, query: str, timeout: float) -> list[SymbolMatch]:
        raise NotImplementedError

    def _error(self, kind: ProviderErrorKind, message: str) -> ProviderError:
        return ProviderError(kind, message, provider_id=self.provider_id)

    @contextmanager
    def _parsing(self, what: str) -> Iterator[None]:
        """Turn a payload that does not have the expected shape into MALFORMED_RESPONSE."""
        try:
            yield
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as exc:
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, f"unreadable {what}: {exc}") from exc

    def _require_key(self) -> str:
        key = self.secrets.get_api_key(self.provider_id) if self.secrets else None
        if not key:
            raise self._error(ProviderErrorKind.AUTH_ERROR, "no API key configured")
        return key

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None,
        timeout: float,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            return await asyncio.to_thread(self.transport.get_json, url, params, headers, timeout)
        except ProviderError as exc:
            if exc.provider_id is None:
                exc.provider_id = self.provider_id
            raise

    def __repr__(self):
        return f"{type(self).__name__}(provider_id={self.provider_id!r})"
