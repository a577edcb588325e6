"""
API key lookup for keyed market data providers.
The store is opaque to callers: adapters ask for a key by provider id and
treat ``None`` as "no usable credential".
"""
from __future__ import annotations

from typing import Protocol

from deepticker.config.settings import Settings

_PLACEHOLDER_PREFIXES = ("REPLACE_", "your_", "sk-REPLACE")


class SecretStore(Protocol):
    def get_api_key(self, provider_id: str) -> str | None:
        ...


def is_usable_key(key: str | None) -> bool:
    """Reject empty keys and the placeholder values shipped in sample configs."""
    if not key or not key.strip():
        return False
    if key.startswith(_PLACEHOLDER_PREFIXES):
        return False
    return "PLACEHOLDER" not in key


class SettingsSecretStore:
    """Reads provider keys from application settings (environment or .env)."""

    _FIELDS = {
        "alpha_vantage": "alpha_vantage_api_key",
        "rapidapi": "rapidapi_key",
    }

    def __init__(self, settings: Settings):
        self._settings = settings

    def get_api_key(self, provider_id: str) -> str | None:
        field = self._FIELDS.get(provider_id)
        if field is None:
            return None
        key = getattr(self._settings, field, None)
        return key.strip() if is_usable_key(key) else None


class StaticSecretStore:
    def __init__(self, keys: dict[str, str] | None = None):
        self._keys = dict(keys or {})

    def get_api_key(self, provider_id: str) -> str | None:
        key = self._keys.get(provider_id)
        return key if is_usable_key(key) else None
