from __future__ import annotations

from typing import Any

from deepticker.domain import Quote, SymbolMatch
from deepticker.errors import ProviderErrorKind
from deepticker.providers.base import QuoteProvider
from deepticker.utils.validators import to_native_float, to_positive_price, utc_now

BASE_URL = "https://www.alphavantage.co/query"

_RATE_LIMIT_HINTS = ("rate limit", "call frequency", "requests per", "premium")
_AUTH_HINTS = ("apikey", "api key")


class AlphaVantageProvider(QuoteProvider):
    """
    Alpha Vantage ``GLOBAL_QUOTE`` and ``SYMBOL_SEARCH``.

    Alpha Vantage answers HTTP 200 for almost everything and reports throttling
    or key problems inside the JSON body, under ``Note`` or ``Information``.
    """

    provider_id = "alpha_vantage"

    def _check_notices(self, payload: dict[str, Any]):
        notice = str(payload.get("Note") or payload.get("Information") or "")
        if notice:
            lowered = notice.lower()
            if any(hint in lowered for hint in _RATE_LIMIT_HINTS):
                raise self._error(ProviderErrorKind.RATE_LIMITED, notice)
            if any(hint in lowered for hint in _AUTH_HINTS):
                raise self._error(ProviderErrorKind.AUTH_ERROR, notice)
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, notice)
        error_message = payload.get("Error Message")
        if error_message:
            if any(hint in str(error_message).lower() for hint in _AUTH_HINTS):
                raise self._error(ProviderErrorKind.AUTH_ERROR, str(error_message))
            raise self._error(ProviderErrorKind.NOT_FOUND, str(error_message))

    async def _query(self, params: dict[str, str], timeout: float) -> dict[str, Any]:
        params = {**params, "apikey": self._require_key()}
        payload = await self._get_json(BASE_URL, params, timeout)
        if not isinstance(payload, dict):
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, "payload is not an object")
        self._check_notices(payload)
        return payload

    async def fetch_quote(self, symbol: str, timeout: float) -> Quote:
        if not symbol or " " in symbol:
            raise self._error(ProviderErrorKind.INVALID_REQUEST, f"invalid symbol {symbol!r}")
        payload = await self._query({"function": "GLOBAL_QUOTE", "symbol": symbol.upper()}, timeout)
        quote = payload.get("Global Quote")
        if quote is None:
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, "missing Global Quote")
        if not quote:
            raise self._error(ProviderErrorKind.NOT_FOUND, f"{symbol} not found")
        with self._parsing("Global Quote"):
            price = to_positive_price(quote.get("05. price"))
            if price is None:
                raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, f"no usable price for {symbol}")
            return Quote(
                symbol=str(quote.get("01. symbol") or symbol),
                price=price,
                previous_close=to_native_float(quote.get("08. previous close")),
                change=to_native_float(quote.get("09. change")),
                change_percent=to_native_float(quote.get("10. change percent")),
                source=self.provider_id,
                timestamp=utc_now(),
            )

    async def search_symbols(self, query: str, timeout: float) -> list[SymbolMatch]:
        payload = await self._query({"function": "SYMBOL_SEARCH", "keywords": query}, timeout)
        with self._parsing("bestMatches"):
            return [
                SymbolMatch(
                    symbol=match["1. symbol"],
                    name=str(match.get("2. name") or match["1. symbol"]),
                    asset_type=match.get("3. type"),
                    exchange=match.get("4. region"),
                    currency=match.get("8. currency"),
                    source=self.provider_id,
                )
                for match in payload.get("bestMatches") or []
                if match.get("1. symbol")
            ]
