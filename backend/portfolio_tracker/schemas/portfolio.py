"""Pydantic schemas for portfolio positions and valuations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PositionCreateRequest(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=10, examples=["AAPL"])
    shares: float = Field(..., gt=0, examples=[10])
    average_cost: float = Field(..., gt=0, examples=[130.0])


class PositionUpdateRequest(BaseModel):
    shares: Optional[float] = Field(default=None, ge=0, description="Zero removes the position")
    average_cost: Optional[float] = Field(default=None, gt=0)


class PositionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    symbol: str
    company_name: Optional[str] = None
    shares: float
    average_cost: float
    current_price: Optional[float] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    last_updated: datetime


class PositionMutationResponse(BaseModel):
    message: str
    position: Optional[PositionSchema] = None


class PositionValuationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    symbol: str
    company_name: Optional[str] = None
    shares: float
    average_cost: float
    current_price: float
    price_is_fallback: bool = Field(..., description="True when no quote exists and average cost is used")
    total_value: float
    total_cost: float
    gain_loss: float
    gain_loss_percent: float
    allocation: float
    sector: Optional[str] = None
    industry: Optional[str] = None
    last_updated: datetime


class PortfolioSummarySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_value: float
    total_cost: float
    total_gain_loss: float
    total_gain_loss_percent: float
    total_positions: int


class PortfolioResponse(BaseModel):
    portfolio: list[PositionValuationSchema]
    summary: PortfolioSummarySchema


class SectorPositionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    symbol: str
    company_name: Optional[str] = None
    value: float
    shares: float


class SectorAllocationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sector: str
    value: float
    percentage: float
    positions: list[SectorPositionSchema]


class AllocationResponse(BaseModel):
    sectors: list[SectorAllocationSchema]
    total_value: float


class PerformerSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    symbol: str
    company_name: Optional[str] = None
    gain_loss_percent: float


class PortfolioStatsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_positions: int
    total_value: float
    total_cost: float
    total_gain_loss: float
    total_gain_loss_percent: float
    diversification_score: float
    unique_sectors: int
    top_performer: Optional[PerformerSchema] = None
    worst_performer: Optional[PerformerSchema] = None


__all__ = [
    "PositionCreateRequest",
    "PositionUpdateRequest",
    "PositionSchema",
    "PositionMutationResponse",
    "PositionValuationSchema",
    "PortfolioSummarySchema",
    "PortfolioResponse",
    "SectorPositionSchema",
    "SectorAllocationSchema",
    "AllocationResponse",
    "PerformerSchema",
    "PortfolioStatsSchema",
]
