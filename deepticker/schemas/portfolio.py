from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HoldingCreateSchema(BaseModel):
    symbol: str = Field(min_length=1, max_length=16)
    quantity: float = Field(gt=0)
    purchase_price: Optional[float] = Field(default=None, ge=0)
    name: Optional[str] = None


class HoldingUpdateSchema(BaseModel):
    quantity: Optional[float] = Field(default=None, gt=0)
    purchase_price: Optional[float] = Field(default=None, ge=0)


class HoldingSchema(BaseModel):
    id: str
    symbol: str
    name: Optional[str] = None
    quantity: float
    purchase_price: Optional[float] = None
    current_price: Optional[float] = None
    previous_close: Optional[float] = None
    price_source: Optional[str] = None
    price_state: str
    last_updated: Optional[datetime] = None
    total_value: float
    daily_change_percent: Optional[float] = None
    gain_loss_percent: Optional[float] = None


class PortfolioSchema(BaseModel):
    schema_version: str
    holdings: list[HoldingSchema]
    total_current_value: float
    initial_value: float
    earnings_percent: Optional[float] = None
    daily_change_percent: Optional[float] = None
    last_refresh: Optional[datetime] = None
    is_refreshing: bool = False
