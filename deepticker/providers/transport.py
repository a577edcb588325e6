from __future__ import annotations

import http.client
import json
import socket
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from deepticker.errors import ProviderError, ProviderErrorKind

USER_AGENT = "deepticker/1.0"


def classify_http_status(code: int) -> ProviderErrorKind:
    if code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if code in (401, 403):
        return ProviderErrorKind.AUTH_ERROR
    if code == 404:
        return ProviderErrorKind.NOT_FOUND
    if code in (400, 422):
        return ProviderErrorKind.INVALID_REQUEST
    return ProviderErrorKind.MALFORMED_RESPONSE


class HttpTransport:
    """Blocking JSON-over-HTTP client; adapters run it in a worker thread."""

    def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 8.0,
    ) -> Any:
        query = urlencode(params or {})
        full_url = f"{url}?{query}" if query else url
        request = Request(full_url, headers={"User-Agent": USER_AGENT, **(headers or {})})
        try:
            with urlopen(request, timeout=timeout) as response:
                raw = response.read()
        except HTTPError as exc:
            raise ProviderError(classify_http_status(exc.code), f"HTTP {exc.code} from {url}") from exc
        except (TimeoutError, socket.timeout) as exc:
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"timed out after {timeout}s") from exc
        except URLError as exc:
            if isinstance(exc.reason, (TimeoutError, socket.timeout)):
                raise ProviderError(ProviderErrorKind.TIMEOUT, f"timed out after {timeout}s") from exc
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"connection failed: {exc.reason}") from exc
        except ConnectionError as exc:
            # RemoteDisconnected and resets surface from getresponse()/read() unwrapped
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"connection dropped: {exc}") from exc
        except http.client.HTTPException as exc:
            raise ProviderError(ProviderErrorKind.MALFORMED_RESPONSE, f"broken HTTP response: {exc!r}") from exc
        except OSError as exc:
            raise ProviderError(ProviderErrorKind.TIMEOUT, f"connection failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(ProviderErrorKind.INVALID_REQUEST, f"bad request url: {exc}") from exc

        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            raise ProviderError(ProviderErrorKind.MALFORMED_RESPONSE, "response body is not JSON") from exc
