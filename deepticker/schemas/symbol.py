from typing import Optional

from pydantic import BaseModel


class SearchResultSchema(BaseModel):
    schema_version: str
    symbol: str
    name: str
    exchange: Optional[str] = None
    asset_type: Optional[str] = None
    currency: Optional[str] = None
    source: Optional[str] = None
