"""Portfolio holdings, one row per user and symbol."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_tracker.db.base import Base


def _uuid_pk() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PortfolioPosition(Base):
    __tablename__ = "portfolio_position"
    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_portfolio_position_user_symbol"),
        Index("ix_portfolio_position_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_pk)
    user_id: Mapped[str] = mapped_column(String(64))
    symbol: Mapped[str] = mapped_column(String(10))
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shares: Mapped[float] = mapped_column(Numeric(18, 6, asdecimal=False))
    average_cost: Mapped[float] = mapped_column(Numeric(14, 4, asdecimal=False))
    # Denormalized from the last quote seen for the symbol
    current_price: Mapped[float | None] = mapped_column(Numeric(14, 4, asdecimal=False), nullable=True)
    sector: Mapped[str | None] = mapped_column(String(128), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


__all__ = ["PortfolioPosition"]
