"""
Portfolio holdings and the pull-based price refresh that feeds them.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from deepticker.domain import Quote
from deepticker.errors import HoldingNotFoundError
from deepticker.services.quote_refresh_service import QuoteRefreshService

logger = logging.getLogger(__name__)


class PriceState(str, Enum):
    PENDING = "pending"
    FAILED = "failed"
    AVAILABLE = "available"


class PortfolioHolding(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    symbol: str
    name: Optional[str] = None
    quantity: float = Field(gt=0)
    purchase_price: Optional[float] = Field(default=None, ge=0)
    current_price: Optional[float] = None
    previous_close: Optional[float] = None
    price_source: Optional[str] = None
    last_updated: Optional[datetime] = None
    price_state: PriceState = PriceState.PENDING

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("symbol must not be empty")
        return cleaned

    @property
    def total_value(self) -> float:
        return (self.current_price or 0.0) * self.quantity

    @property
    def daily_change_percent(self) -> Optional[float]:
        if self.current_price is None or not self.previous_close:
            return None
        return (self.current_price - self.previous_close) / self.previous_close * 100.0

    @property
    def gain_loss_percent(self) -> Optional[float]:
        if self.current_price is None or not self.purchase_price:
            return None
        return (self.current_price - self.purchase_price) / self.purchase_price * 100.0

    def apply_quote(self, quote: Quote):
        self.current_price = quote.price
        self.previous_close = quote.previous_close
        self.price_source = quote.source
        self.last_updated = quote.timestamp
        self.price_state = PriceState.AVAILABLE


class PortfolioStore:
    """In-memory holdings; prices are pulled from the quote resolver and applied here."""

    def __init__(self, quotes: QuoteRefreshService):
        self._quotes = quotes
        self._holdings: dict[str, PortfolioHolding] = {}
        self._lock = Lock()
        self._refresh_lock = asyncio.Lock()
        self.last_refresh: Optional[datetime] = None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_lock.locked()

    def holdings(self) -> list[PortfolioHolding]:
        with self._lock:
            return list(self._holdings.values())

    def get(self, holding_id: str) -> PortfolioHolding:
        with self._lock:
            holding = self._holdings.get(holding_id)
        if holding is None:
            raise HoldingNotFoundError(holding_id)
        return holding

    def add(
        self,
        symbol: str,
        quantity: float,
        purchase_price: float | None = None,
        name: str | None = None,
    ) -> PortfolioHolding:
        holding = PortfolioHolding(symbol=symbol, name=name, quantity=quantity, purchase_price=purchase_price)
        with self._lock:
            self._holdings[holding.id] = holding
        logger.info("Holding added", extra={"symbol": holding.symbol, "holding_id": holding.id})
        return holding

    def update(self, holding_id: str, quantity: float | None = None, purchase_price: float | None = None) -> PortfolioHolding:
        holding = self.get(holding_id)
        changes = {}
        if quantity is not None:
            changes["quantity"] = quantity
        if purchase_price is not None:
            changes["purchase_price"] = purchase_price
        updated = PortfolioHolding.model_validate({**holding.model_dump(), **changes})
        with self._lock:
            self._holdings[holding_id] = updated
        return updated

    def remove(self, holding_id: str):
        with self._lock:
            if self._holdings.pop(holding_id, None) is None:
                raise HoldingNotFoundError(holding_id)

    async def refresh_all_prices(self, timeout: float | None = None) -> dict[str, PriceState]:
        """Refresh every distinct symbol once; a failed symbol keeps its last known price."""
        if self._refresh_lock.locked():
            logger.info("Portfolio refresh already in progress")
            return {}
        async with self._refresh_lock:
            symbols = sorted({h.symbol for h in self.holdings()})
            if not symbols:
                return {}
            outcomes = await self._quotes.refresh(symbols, timeout=timeout)
            states: dict[str, PriceState] = {}
            with self._lock:
                for holding in self._holdings.values():
                    outcome = outcomes.get(holding.symbol)
                    if outcome is None:
                        continue
                    if outcome.ok:
                        holding.apply_quote(outcome.quote)
                    elif holding.current_price is None:
                        holding.price_state = PriceState.FAILED
                    states[holding.symbol] = holding.price_state
            self.last_refresh = datetime.now(timezone.utc)
            return states

    @property
    def total_current_value(self) -> float:
        return sum(h.total_value for h in self.holdings())

    @property
    def initial_value(self) -> float:
        return sum(h.purchase_price * h.quantity for h in self.holdings() if h.purchase_price is not None)

    @property
    def earnings_percent(self) -> Optional[float]:
        initial = self.initial_value
        if initial <= 0:
            return None
        return (self.total_current_value - initial) / initial * 100.0

    @property
    def daily_change_percent(self) -> Optional[float]:
        priced = [h for h in self.holdings() if h.current_price is not None and h.previous_close]
        previous_value = sum(h.previous_close * h.quantity for h in priced)
        if previous_value <= 0:
            return None
        current_value = sum(h.current_price * h.quantity for h in priced)
        return (current_value - previous_value) / previous_value * 100.0
