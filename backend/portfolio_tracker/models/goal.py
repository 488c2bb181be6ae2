"""Savings goals owned by a user."""

from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Date, DateTime, Enum, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_tracker.db.base import Base

RISK_TOLERANCES = ("conservative", "moderate", "aggressive")
GOAL_CATEGORIES = ("retirement", "house", "education", "emergency", "vacation", "other")
GOAL_PRIORITIES = ("low", "medium", "high")


def _uuid_pk() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Goal(Base):
    __tablename__ = "goal"
    __table_args__ = (Index("ix_goal_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_pk)
    user_id: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_amount: Mapped[float] = mapped_column(Numeric(15, 2, asdecimal=False))
    current_amount: Mapped[float] = mapped_column(Numeric(15, 2, asdecimal=False), default=0.0)
    target_date: Mapped[date] = mapped_column(Date)
    risk_tolerance: Mapped[str] = mapped_column(
        Enum(*RISK_TOLERANCES, name="goal_risk_tolerance"), default="moderate"
    )
    monthly_contribution: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    category: Mapped[str] = mapped_column(Enum(*GOAL_CATEGORIES, name="goal_category"), default="other")
    priority: Mapped[str] = mapped_column(Enum(*GOAL_PRIORITIES, name="goal_priority"), default="medium")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_achieved: Mapped[bool] = mapped_column(Boolean, default=False)
    achieved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


__all__ = ["Goal", "RISK_TOLERANCES", "GOAL_CATEGORIES", "GOAL_PRIORITIES"]
