"""Pydantic schema exports."""

from .goals import GoalCreateRequest, GoalSchema, GoalStatsSchema, GoalUpdateRequest
from .portfolio import (
    PortfolioResponse,
    PortfolioStatsSchema,
    PositionCreateRequest,
    PositionSchema,
    PositionUpdateRequest,
    PositionValuationSchema,
)
from .quotes import QuoteRecord, QuoteUpdate, StockQuoteSchema

__all__ = [
    "GoalCreateRequest",
    "GoalSchema",
    "GoalStatsSchema",
    "GoalUpdateRequest",
    "PortfolioResponse",
    "PortfolioStatsSchema",
    "PositionCreateRequest",
    "PositionSchema",
    "PositionUpdateRequest",
    "PositionValuationSchema",
    "QuoteRecord",
    "QuoteUpdate",
    "StockQuoteSchema",
]
