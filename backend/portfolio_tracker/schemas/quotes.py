"""Quote records, partial quote updates and stock endpoint payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

QUOTE_FIELDS = ("price", "previous_close", "change", "change_percent", "volume")
OVERVIEW_FIELDS = (
    "company_name",
    "sector",
    "industry",
    "market_cap",
    "pe_ratio",
    "dividend_yield",
    "week_high_52",
    "week_low_52",
    "beta",
    "eps",
)

HistoryPeriod = Literal["1d", "5d", "1m", "3m", "6m", "1y", "2y", "5y"]


class QuoteUpdate(BaseModel):
    """Partial quote record used for merge-or-create writes.

    Only fields that were explicitly assigned are written; an assigned
    ``None`` clears the stored value while an unassigned field keeps it.
    """

    model_config = ConfigDict(extra="forbid")

    company_name: Optional[str] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    price: Optional[float] = None
    previous_close: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    volume: Optional[int] = Field(default=None, ge=0)
    market_cap: Optional[int] = Field(default=None, ge=0)
    pe_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    week_high_52: Optional[float] = None
    week_low_52: Optional[float] = None
    beta: Optional[float] = None
    eps: Optional[float] = None
    last_updated: Optional[datetime] = None

    def changes(self) -> dict[str, Any]:
        """Return only the explicitly assigned fields."""

        return self.model_dump(exclude_unset=True)

    def merged_with(self, other: "QuoteUpdate") -> "QuoteUpdate":
        """Return a new update where ``other``'s assigned fields win."""

        return QuoteUpdate(**{**self.changes(), **other.changes()})


class QuoteRecord(BaseModel):
    """Last known quote for one symbol, as held by the cache store."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str = Field(..., min_length=1, max_length=10, examples=["AAPL"])
    company_name: Optional[str] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    price: float
    previous_close: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    volume: Optional[int] = None
    market_cap: Optional[int] = None
    pe_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    week_high_52: Optional[float] = None
    week_low_52: Optional[float] = None
    beta: Optional[float] = None
    eps: Optional[float] = None
    last_updated: datetime


class StockQuoteSchema(QuoteRecord):
    is_fresh: bool = Field(..., description="False when served from a stale cache after a failed refresh")


class SymbolErrorSchema(BaseModel):
    symbol: str
    error: str


class QuoteBatchRequest(BaseModel):
    symbols: list[str] = Field(..., min_length=1, examples=[["AAPL", "MSFT"]])


class QuoteBatchResponse(BaseModel):
    stocks: list[StockQuoteSchema]
    errors: list[SymbolErrorSchema]


class StockQuoteResponse(BaseModel):
    stock: StockQuoteSchema


class StockListResponse(BaseModel):
    stocks: list[QuoteRecord]


class MoversResponse(BaseModel):
    type: Literal["gainers", "losers"]
    stocks: list[QuoteRecord]


class SectorStocksResponse(BaseModel):
    sector: str
    stocks: list[QuoteRecord]


class SectorCountSchema(BaseModel):
    name: str
    count: int


class SectorsResponse(BaseModel):
    sectors: list[SectorCountSchema]


class HistoryPointSchema(BaseModel):
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    adjusted_close: Optional[float] = None
    volume: float


class HistoryResponse(BaseModel):
    symbol: str
    period: HistoryPeriod
    data: list[HistoryPointSchema]


class AdminUpdateRequest(BaseModel):
    symbols: Optional[list[str]] = Field(default=None, description="Defaults to the popular symbol list")


class AdminUpdateResponse(BaseModel):
    message: str = "Stock data update completed"
    updated: int
    errors: int
    stale: list[str]
    succeeded: list[QuoteRecord]
    failed: list[SymbolErrorSchema]


__all__ = [
    "QUOTE_FIELDS",
    "OVERVIEW_FIELDS",
    "HistoryPeriod",
    "QuoteUpdate",
    "QuoteRecord",
    "StockQuoteSchema",
    "SymbolErrorSchema",
    "QuoteBatchRequest",
    "QuoteBatchResponse",
    "StockQuoteResponse",
    "StockListResponse",
    "MoversResponse",
    "SectorStocksResponse",
    "SectorCountSchema",
    "SectorsResponse",
    "HistoryPointSchema",
    "HistoryResponse",
    "AdminUpdateRequest",
    "AdminUpdateResponse",
]
