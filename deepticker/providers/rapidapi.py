from __future__ import annotations

from typing import Any

from deepticker.config.secrets import SecretStore
from deepticker.domain import Quote, SymbolMatch
from deepticker.errors import ProviderErrorKind
from deepticker.providers.base import QuoteProvider
from deepticker.providers.transport import HttpTransport
from deepticker.utils.validators import normalize_timestamp, to_native_float, to_positive_price, utc_now


class RapidApiYahooProvider(QuoteProvider):
    """Yahoo Finance quotes through RapidAPI, authenticated with a RapidAPI key."""

    provider_id = "rapidapi"

    def __init__(
        self,
        quote_ttl_seconds: float,
        host: str,
        transport: HttpTransport | None = None,
        secrets: SecretStore | None = None,
        region: str = "US",
    ):
        super().__init__(quote_ttl_seconds, transport=transport, secrets=secrets)
        self.host = host
        self.region = region

    def _headers(self) -> dict[str, str]:
        return {"X-RapidAPI-Key": self._require_key(), "X-RapidAPI-Host": self.host}

    def _check_message(self, payload: dict[str, Any]):
        # RapidAPI gateway errors come back as {"message": "..."}
        message = str(payload.get("message") or "")
        if not message:
            return
        lowered = message.lower()
        if "not subscribed" in lowered or "invalid api key" in lowered:
            raise self._error(ProviderErrorKind.AUTH_ERROR, message)
        if "too many requests" in lowered or "rate limit" in lowered or "exceeded" in lowered:
            raise self._error(ProviderErrorKind.RATE_LIMITED, message)
        raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, message)

    async def fetch_quote(self, symbol: str, timeout: float) -> Quote:
        if not symbol or "," in symbol:
            raise self._error(ProviderErrorKind.INVALID_REQUEST, f"invalid symbol {symbol!r}")
        headers = self._headers()
        payload = await self._get_json(
            f"https://{self.host}/market/v2/get-quotes",
            {"region": self.region, "symbols": symbol.upper()},
            timeout,
            headers=headers,
        )
        if not isinstance(payload, dict):
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, "quote payload is not an object")
        self._check_message(payload)
        response = payload.get("quoteResponse")
        if not isinstance(response, dict):
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, "missing quoteResponse")
        with self._parsing("quote payload"):
            results = response.get("result") or []
            match = next((r for r in results if str(r.get("symbol", "")).upper() == symbol.upper()), None)
            if match is None:
                raise self._error(ProviderErrorKind.NOT_FOUND, f"{symbol} not found")
            price = to_positive_price(match.get("regularMarketPrice"))
            if price is None:
                raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, f"no usable price for {symbol}")
            market_time = match.get("regularMarketTime")
            return Quote(
                symbol=symbol,
                price=price,
                previous_close=to_native_float(match.get("regularMarketPreviousClose")),
                change=to_native_float(match.get("regularMarketChange")),
                change_percent=to_native_float(match.get("regularMarketChangePercent")),
                source=self.provider_id,
                timestamp=normalize_timestamp(market_time) if market_time else utc_now(),
            )

    async def search_symbols(self, query: str, timeout: float) -> list[SymbolMatch]:
        headers = self._headers()
        payload = await self._get_json(
            f"https://{self.host}/auto-complete",
            {"q": query, "region": self.region},
            timeout,
            headers=headers,
        )
        if not isinstance(payload, dict):
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, "search payload is not an object")
        self._check_message(payload)
        with self._parsing("search payload"):
            return [
                SymbolMatch(
                    symbol=item["symbol"],
                    name=str(item.get("shortname") or item.get("longname") or item["symbol"]),
                    exchange=item.get("exchDisp") or item.get("exchange"),
                    asset_type=item.get("quoteType"),
                    source=self.provider_id,
                )
                for item in payload.get("quotes") or []
                if item.get("symbol")
            ]
