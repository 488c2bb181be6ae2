"""Cached market quote per ticker symbol."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_tracker.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockQuote(Base):
    __tablename__ = "stock_quote"
    __table_args__ = (
        UniqueConstraint("symbol", name="uq_stock_quote_symbol"),
        Index("ix_stock_quote_sector", "sector"),
        Index("ix_stock_quote_last_updated", "last_updated"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(String(10))
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sector: Mapped[str | None] = mapped_column(String(128), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(255), nullable=True)

    price: Mapped[float] = mapped_column(Numeric(14, 4, asdecimal=False))
    previous_close: Mapped[float | None] = mapped_column(Numeric(14, 4, asdecimal=False), nullable=True)
    change: Mapped[float | None] = mapped_column(Numeric(14, 4, asdecimal=False), nullable=True)
    change_percent: Mapped[float | None] = mapped_column(Numeric(10, 4, asdecimal=False), nullable=True)
    volume: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    market_cap: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    pe_ratio: Mapped[float | None] = mapped_column(Numeric(12, 4, asdecimal=False), nullable=True)
    dividend_yield: Mapped[float | None] = mapped_column(Numeric(10, 6, asdecimal=False), nullable=True)
    week_high_52: Mapped[float | None] = mapped_column(Numeric(14, 4, asdecimal=False), nullable=True)
    week_low_52: Mapped[float | None] = mapped_column(Numeric(14, 4, asdecimal=False), nullable=True)
    beta: Mapped[float | None] = mapped_column(Numeric(10, 4, asdecimal=False), nullable=True)
    eps: Mapped[float | None] = mapped_column(Numeric(14, 4, asdecimal=False), nullable=True)

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


__all__ = ["StockQuote"]
