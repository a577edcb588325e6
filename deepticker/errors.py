"""Exceptions shared by provider adapters, resolvers, and the portfolio store."""
from __future__ import annotations

from enum import Enum


class DeepTickerError(Exception):
    """Base exception for all app-specific errors."""


class ProviderErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    MALFORMED_RESPONSE = "malformed_response"
    AUTH_ERROR = "auth_error"


_RETRYABLE = {ProviderErrorKind.TIMEOUT, ProviderErrorKind.MALFORMED_RESPONSE}
_SYSTEMIC = {ProviderErrorKind.RATE_LIMITED, ProviderErrorKind.AUTH_ERROR}


class ProviderError(DeepTickerError):
    """Raised by a provider adapter when a single upstream call fails."""

    def __init__(self, kind: ProviderErrorKind, message: str = "", provider_id: str | None = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value
        self.provider_id = provider_id

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE

    @property
    def systemic(self) -> bool:
        """Rate limits and credential failures disable the whole provider."""
        return self.kind in _SYSTEMIC

    def __repr__(self):
        return f"ProviderError(kind={self.kind.value}, provider={self.provider_id}, message={self.message!r})"


class NoSymbolsError(DeepTickerError, ValueError):
    """Raised when a refresh is requested for an empty symbol list."""

    def __init__(self):
        super().__init__("No symbols to refresh.")


class AllSourcesFailedError(DeepTickerError):
    """Terminal per-symbol failure: no provider succeeded and nothing was cached."""

    def __init__(self, symbol: str, attempts: list[tuple[str, str]] | None = None):
        self.symbol = symbol
        self.attempts = list(attempts or [])
        super().__init__(f"All data sources failed for {symbol}.")


class HoldingNotFoundError(DeepTickerError, KeyError):
    def __init__(self, holding_id: str):
        self.holding_id = holding_id
        super().__init__(f"Holding {holding_id} not found")
