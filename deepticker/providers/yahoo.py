from __future__ import annotations

from typing import Any
from urllib.parse import quote as url_quote

from deepticker.domain import Quote, SymbolMatch
from deepticker.errors import ProviderErrorKind
from deepticker.providers.base import QuoteProvider
from deepticker.utils.validators import normalize_timestamp, to_native_float, to_positive_price, utc_now

CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
SEARCH_URL = "https://query1.finance.yahoo.com/v1/finance/search"


class YahooChartProvider(QuoteProvider):
    """Keyless real-time quotes from the public Yahoo Finance chart endpoint."""

    provider_id = "yahoo"

    def _chart_result(self, symbol: str, payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict) or not isinstance(payload.get("chart"), dict):
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, "missing chart object")
        chart = payload["chart"]
        error = chart.get("error")
        if error:
            code = str(error.get("code") or "") if isinstance(error, dict) else str(error)
            if code.lower().replace(" ", "") == "notfound":
                raise self._error(ProviderErrorKind.NOT_FOUND, f"{symbol} not found")
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, f"chart error: {code}")
        results = chart.get("result") or []
        if not results or not isinstance(results[0], dict):
            raise self._error(ProviderErrorKind.NOT_FOUND, f"no chart data for {symbol}")
        return results[0]

    async def fetch_quote(self, symbol: str, timeout: float) -> Quote:
        if not symbol or "/" in symbol:
            raise self._error(ProviderErrorKind.INVALID_REQUEST, f"cannot build chart url for {symbol!r}")
        payload = await self._get_json(
            CHART_URL.format(symbol=url_quote(symbol.upper())),
            {"interval": "1m", "range": "1d"},
            timeout,
        )
        with self._parsing("chart payload"):
            meta = self._chart_result(symbol, payload).get("meta") or {}
            price = to_positive_price(meta.get("regularMarketPrice"))
            if price is None:
                raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, f"no usable price for {symbol}")
            market_time = meta.get("regularMarketTime")
            return Quote(
                symbol=str(meta.get("symbol") or symbol),
                price=price,
                previous_close=to_native_float(meta.get("previousClose") or meta.get("chartPreviousClose")),
                source=self.provider_id,
                timestamp=normalize_timestamp(market_time) if market_time else utc_now(),
            )

    async def search_symbols(self, query: str, timeout: float) -> list[SymbolMatch]:
        payload = await self._get_json(SEARCH_URL, {"q": query, "quotesCount": 10, "newsCount": 0}, timeout)
        if not isinstance(payload, dict):
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, "search payload is not an object")
        results: list[SymbolMatch] = []
        with self._parsing("search payload"):
            for item in payload.get("quotes") or []:
                symbol = str(item.get("symbol") or "")
                if not symbol:
                    continue
                results.append(
                    SymbolMatch(
                        symbol=symbol,
                        name=str(item.get("shortname") or item.get("longname") or symbol),
                        exchange=item.get("exchDisp") or item.get("exchange"),
                        asset_type=item.get("quoteType"),
                        source=self.provider_id,
                    )
                )
        return results
