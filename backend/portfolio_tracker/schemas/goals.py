"""Pydantic schemas for savings goals."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RiskTolerance = Literal["conservative", "moderate", "aggressive"]
GoalCategory = Literal["retirement", "house", "education", "emergency", "vacation", "other"]
GoalPriority = Literal["low", "medium", "high"]


class GoalCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    target_amount: float = Field(..., ge=0)
    target_date: date
    risk_tolerance: RiskTolerance = "moderate"
    monthly_contribution: Optional[float] = Field(default=None, ge=0)
    category: GoalCategory = "other"
    priority: GoalPriority = "medium"


class GoalUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    target_amount: Optional[float] = Field(default=None, ge=0)
    current_amount: Optional[float] = Field(default=None, ge=0)
    target_date: Optional[date] = None
    risk_tolerance: Optional[RiskTolerance] = None
    monthly_contribution: Optional[float] = Field(default=None, ge=0)
    category: Optional[GoalCategory] = None
    priority: Optional[GoalPriority] = None
    is_active: Optional[bool] = None


class GoalProgressRequest(BaseModel):
    amount: float = Field(..., ge=0)
    type: Literal["add", "subtract"]


class GoalSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    target_amount: float
    current_amount: float
    target_date: date
    risk_tolerance: str
    monthly_contribution: Optional[float] = None
    category: str
    priority: str
    is_active: bool
    is_achieved: bool
    achieved_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    progress: float = 0.0
    days_remaining: int = 0
    months_remaining: int = 0
    required_monthly_contribution: float = 0.0


class PaginationSchema(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class GoalListResponse(BaseModel):
    goals: list[GoalSchema]
    pagination: PaginationSchema


class GoalMutationResponse(BaseModel):
    message: str
    goal: Optional[GoalSchema] = None


class GoalStatsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_goals: int
    active_goals: int
    achieved_goals: int
    total_target_amount: float
    total_current_amount: float
    average_progress: float
    goals_by_category: dict[str, int]
    goals_by_priority: dict[str, int]
    goals_expiring_soon: int


__all__ = [
    "GoalCreateRequest",
    "GoalUpdateRequest",
    "GoalProgressRequest",
    "GoalSchema",
    "PaginationSchema",
    "GoalListResponse",
    "GoalMutationResponse",
    "GoalStatsSchema",
]
