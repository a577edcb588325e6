"""
Core value types passed between adapters, resolvers, the cache, and the portfolio.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from deepticker.utils.validators import normalize_timestamp, to_native_float, utc_now

CACHE_SOURCE = "cache"


class Quote(BaseModel):
    """Immutable price snapshot for one symbol."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    price: float = Field(gt=0)
    previous_close: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    source: str
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("symbol must not be empty")
        return cleaned

    @field_validator("timestamp", mode="before")
    @classmethod
    def _utc_timestamp(cls, value: Any) -> datetime:
        return normalize_timestamp(value)

    @model_validator(mode="before")
    @classmethod
    def _derive_change(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        previous = to_native_float(data.get("previous_close"))
        # A zero previous close only means the provider had nothing to report.
        data["previous_close"] = previous if previous and previous > 0 else None
        price = to_native_float(data.get("price"))
        if price is None or data["previous_close"] is None:
            return data
        if data.get("change") is None:
            data["change"] = round(price - data["previous_close"], 6)
        if data.get("change_percent") is None:
            data["change_percent"] = round((price - data["previous_close"]) / data["previous_close"] * 100.0, 6)
        return data

    @property
    def is_cached(self) -> bool:
        return self.source == CACHE_SOURCE


class SymbolMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    exchange: Optional[str] = None
    asset_type: Optional[str] = None
    currency: Optional[str] = None
    source: Optional[str] = None

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.strip().upper()
