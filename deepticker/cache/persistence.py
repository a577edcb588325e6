from __future__ import annotations

import logging
from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker

from deepticker.cache.quote_cache import CacheEntry
from deepticker.database import session_scope
from deepticker.domain import Quote, SymbolMatch
from deepticker.models import CacheEntryRow

logger = logging.getLogger(__name__)

_MATCHES = TypeAdapter(list[SymbolMatch])


def encode_value(value: Any) -> tuple[str, str]:
    if isinstance(value, Quote):
        return "quote", value.model_dump_json()
    if isinstance(value, list) and all(isinstance(item, SymbolMatch) for item in value):
        return "search", _MATCHES.dump_json(value).decode("utf-8")
    raise TypeError(f"unsupported cache value: {type(value).__name__}")


def decode_value(kind: str, payload: str) -> Any:
    if kind == "quote":
        return Quote.model_validate_json(payload)
    if kind == "search":
        return _MATCHES.validate_json(payload)
    raise ValueError(f"unknown cache entry kind: {kind}")


class SqlCacheBackend:
    """Write-through persistence so cached quotes survive a restart."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def load_all(self) -> dict[str, CacheEntry]:
        entries: dict[str, CacheEntry] = {}
        with session_scope(self._session_factory) as session:
            for row in session.query(CacheEntryRow).all():
                try:
                    value = decode_value(row.kind, row.payload)
                except (ValidationError, ValueError) as exc:
                    logger.warning(f"Dropping unreadable cache row {row.key}: {exc}")
                    session.delete(row)
                    continue
                entries[row.key] = CacheEntry(value=value, stored_at=row.stored_at, expiry_seconds=row.expiry_seconds)
        return entries

    def save(self, key: str, entry: CacheEntry) -> None:
        kind, payload = encode_value(entry.value)
        with session_scope(self._session_factory) as session:
            session.merge(
                CacheEntryRow(
                    key=key,
                    kind=kind,
                    payload=payload,
                    stored_at=entry.stored_at,
                    expiry_seconds=entry.expiry_seconds,
                )
            )

    def delete(self, keys: list[str]) -> None:
        if not keys:
            return
        with session_scope(self._session_factory) as session:
            session.execute(delete(CacheEntryRow).where(CacheEntryRow.key.in_(keys)))
