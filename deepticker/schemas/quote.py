from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class QuoteSchema(BaseModel):
    schema_version: str
    symbol: str
    price: float
    previous_close: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    source: str
    timestamp: datetime
    data_source: str = "live"
    stale: bool = False


class QuoteResultSchema(BaseModel):
    symbol: str
    status: str
    quote: Optional[QuoteSchema] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    attempts: list[dict[str, str]] = []


class QuotesResponseSchema(BaseModel):
    schema_version: str
    results: dict[str, QuoteResultSchema]
    succeeded: int
    failed: int
