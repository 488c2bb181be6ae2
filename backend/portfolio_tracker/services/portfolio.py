"""Portfolio positions: cost-basis merging and quote-backed valuation.

Valuation never fails because a quote is missing: a position without any
quote is priced at its own average cost and flagged ``price_is_fallback``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence
from uuid import uuid4

from sqlalchemy import Float, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_tracker.db.database import upsert_insert
from portfolio_tracker.errors import ProviderUnavailable
from portfolio_tracker.models import PortfolioPosition
from portfolio_tracker.schemas.quotes import QuoteRecord
from portfolio_tracker.services.quote_refresher import QuoteRefresher
from portfolio_tracker.services.quote_store import normalize_symbol
from portfolio_tracker.services.quotes import current_quotes

logger = logging.getLogger(__name__)

UNKNOWN_SECTOR = "Unknown"


@dataclass
class PositionValuation:
    id: str
    symbol: str
    company_name: str | None
    shares: float
    average_cost: float
    current_price: float
    price_is_fallback: bool
    total_value: float
    total_cost: float
    gain_loss: float
    gain_loss_percent: float
    sector: str | None
    industry: str | None
    last_updated: datetime
    allocation: float = 0.0


@dataclass
class PortfolioSummary:
    total_value: float
    total_cost: float
    total_gain_loss: float
    total_gain_loss_percent: float
    total_positions: int


@dataclass
class SectorPosition:
    symbol: str
    company_name: str | None
    value: float
    shares: float


@dataclass
class SectorAllocation:
    sector: str
    value: float = 0.0
    percentage: float = 0.0
    positions: list[SectorPosition] = field(default_factory=list)


@dataclass
class Performer:
    symbol: str
    company_name: str | None
    gain_loss_percent: float


@dataclass
class PortfolioStats:
    total_positions: int
    total_value: float
    total_cost: float
    total_gain_loss: float
    total_gain_loss_percent: float
    diversification_score: float
    unique_sectors: int
    top_performer: Performer | None = None
    worst_performer: Performer | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _percent(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def weighted_average_cost(old_shares: float, old_cost: float, added_shares: float, added_cost: float) -> float:
    """Share-weighted cost basis after adding ``added_shares`` at ``added_cost``."""

    total_shares = old_shares + added_shares
    if total_shares <= 0:
        raise ValueError("Total shares must be positive")
    return (old_shares * old_cost + added_shares * added_cost) / total_shares


def value_position(position: PortfolioPosition, quote: QuoteRecord | None) -> PositionValuation:
    shares = float(position.shares)
    average_cost = float(position.average_cost)
    current_price = float(quote.price) if quote is not None else average_cost
    total_value = shares * current_price
    total_cost = shares * average_cost
    gain_loss = total_value - total_cost
    return PositionValuation(
        id=position.id,
        symbol=position.symbol,
        company_name=position.company_name or (quote.company_name if quote else None),
        shares=shares,
        average_cost=average_cost,
        current_price=current_price,
        price_is_fallback=quote is None,
        total_value=total_value,
        total_cost=total_cost,
        gain_loss=gain_loss,
        gain_loss_percent=_percent(gain_loss, total_cost),
        sector=position.sector or (quote.sector if quote else None),
        industry=position.industry or (quote.industry if quote else None),
        last_updated=position.last_updated,
    )


def with_allocation(valuations: Sequence[PositionValuation]) -> list[PositionValuation]:
    total_value = sum(v.total_value for v in valuations)
    return [replace(v, allocation=_percent(v.total_value, total_value)) for v in valuations]


def summarize(valuations: Sequence[PositionValuation]) -> PortfolioSummary:
    total_value = sum(v.total_value for v in valuations)
    total_cost = sum(v.total_cost for v in valuations)
    return PortfolioSummary(
        total_value=total_value,
        total_cost=total_cost,
        total_gain_loss=total_value - total_cost,
        total_gain_loss_percent=_percent(total_value - total_cost, total_cost),
        total_positions=len(valuations),
    )


def sector_allocation(valuations: Iterable[PositionValuation]) -> tuple[list[SectorAllocation], float]:
    sectors: dict[str, SectorAllocation] = {}
    total_value = 0.0
    for valuation in valuations:
        name = valuation.sector or UNKNOWN_SECTOR
        bucket = sectors.setdefault(name, SectorAllocation(sector=name))
        bucket.value += valuation.total_value
        bucket.positions.append(
            SectorPosition(
                symbol=valuation.symbol,
                company_name=valuation.company_name,
                value=valuation.total_value,
                shares=valuation.shares,
            )
        )
        total_value += valuation.total_value
    for bucket in sectors.values():
        bucket.percentage = _percent(bucket.value, total_value)
    return sorted(sectors.values(), key=lambda b: b.value, reverse=True), total_value


def portfolio_stats(valuations: Sequence[PositionValuation]) -> PortfolioStats:
    summary = summarize(valuations)
    if not valuations:
        return PortfolioStats(
            total_positions=0,
            total_value=0.0,
            total_cost=0.0,
            total_gain_loss=0.0,
            total_gain_loss_percent=0.0,
            diversification_score=0.0,
            unique_sectors=0,
        )
    best = max(valuations, key=lambda v: v.gain_loss_percent)
    worst = min(valuations, key=lambda v: v.gain_loss_percent)
    unique_sectors = len({v.sector or UNKNOWN_SECTOR for v in valuations})
    return PortfolioStats(
        total_positions=summary.total_positions,
        total_value=summary.total_value,
        total_cost=summary.total_cost,
        total_gain_loss=summary.total_gain_loss,
        total_gain_loss_percent=summary.total_gain_loss_percent,
        diversification_score=min(unique_sectors / len(valuations) * 100, 100.0),
        unique_sectors=unique_sectors,
        top_performer=Performer(best.symbol, best.company_name, best.gain_loss_percent),
        worst_performer=Performer(worst.symbol, worst.company_name, worst.gain_loss_percent),
    )


async def list_positions(session: AsyncSession, user_id: str) -> list[PortfolioPosition]:
    result = await session.execute(
        select(PortfolioPosition).where(PortfolioPosition.user_id == user_id).order_by(PortfolioPosition.symbol)
    )
    return list(result.scalars().all())


async def get_position(session: AsyncSession, user_id: str, position_id: str) -> PortfolioPosition | None:
    result = await session.execute(
        select(PortfolioPosition).where(
            PortfolioPosition.id == position_id,
            PortfolioPosition.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def value_portfolio(
    session: AsyncSession,
    refresher: QuoteRefresher,
    user_id: str,
) -> list[PositionValuation]:
    """Value every holding, refreshing stale quotes and falling back to cost."""

    positions = await list_positions(session, user_id)
    quotes = await current_quotes(refresher, [p.symbol for p in positions])
    return with_allocation([value_position(p, quotes.get(p.symbol)) for p in positions])


async def portfolio_overview(
    session: AsyncSession,
    refresher: QuoteRefresher,
    user_id: str,
) -> tuple[list[PositionValuation], PortfolioSummary]:
    valuations = await value_portfolio(session, refresher, user_id)
    return valuations, summarize(valuations)


def _quote_columns(quote: QuoteRecord | None) -> dict[str, Any]:
    if quote is None:
        return {}
    return {
        "current_price": quote.price,
        "company_name": quote.company_name,
        "sector": quote.sector,
        "industry": quote.industry,
    }


async def add_position(
    session: AsyncSession,
    refresher: QuoteRefresher,
    user_id: str,
    symbol: str,
    shares: float,
    average_cost: float,
) -> tuple[PortfolioPosition, bool]:
    """Create a position or merge into the existing one; returns ``(position, created)``.

    The merge is a single ``INSERT ... ON CONFLICT (user_id, symbol) DO
    UPDATE`` whose SET clause computes the share-weighted cost from the
    stored row, so concurrent additions to the same holding all count.
    """

    if shares <= 0 or average_cost <= 0:
        raise ValueError("Shares and average cost must be positive")
    normalized = normalize_symbol(symbol)
    quote: QuoteRecord | None = None
    try:
        quote = (await refresher.refresh(normalized)).record
    except ProviderUnavailable as exc:
        logger.warning("Failed to get stock data for %s: %s", normalized, exc)

    position_id = str(uuid4())
    now = _utcnow()
    quote_columns = _quote_columns(quote)
    insert = upsert_insert(session.bind.dialect.name)
    stmt = insert(PortfolioPosition).values(
        id=position_id,
        user_id=user_id,
        symbol=normalized,
        shares=shares,
        average_cost=average_cost,
        last_updated=now,
        created_at=now,
        **quote_columns,
    )
    stored = PortfolioPosition.__table__.c
    added = stmt.excluded
    merge = {
        # SQLite may hand back whole-number NUMERIC values as integers
        "average_cost": cast(stored.shares * stored.average_cost + added.shares * added.average_cost, Float)
        / (stored.shares + added.shares),
        "shares": stored.shares + added.shares,
        "last_updated": added.last_updated,
    }
    for name in quote_columns:
        merge[name] = func.coalesce(added[name], stored[name])
    stmt = stmt.on_conflict_do_update(
        index_elements=[PortfolioPosition.user_id, PortfolioPosition.symbol],
        set_=merge,
    )

    await session.execute(stmt)
    await session.commit()
    result = await session.execute(
        select(PortfolioPosition)
        .where(PortfolioPosition.user_id == user_id, PortfolioPosition.symbol == normalized)
        .execution_options(populate_existing=True)
    )
    position = result.scalar_one()
    # A merged row keeps the id of the request that inserted it
    created = position.id == position_id
    logger.info("%s position %s for user %s", "Added" if created else "Merged", normalized, user_id)
    return position, created


async def update_position(
    session: AsyncSession,
    position: PortfolioPosition,
    *,
    shares: float | None = None,
    average_cost: float | None = None,
) -> PortfolioPosition | None:
    """Apply a manual edit; setting shares to zero removes the position (returns ``None``)."""

    if shares is not None and shares == 0:
        await delete_position(session, position)
        return None
    if shares is not None:
        position.shares = shares
    if average_cost is not None:
        position.average_cost = average_cost
    position.last_updated = _utcnow()
    await session.commit()
    await session.refresh(position)
    return position


async def delete_position(session: AsyncSession, position: PortfolioPosition) -> None:
    await session.delete(position)
    await session.commit()


__all__ = [
    "PositionValuation",
    "PortfolioSummary",
    "SectorAllocation",
    "SectorPosition",
    "Performer",
    "PortfolioStats",
    "weighted_average_cost",
    "value_position",
    "with_allocation",
    "summarize",
    "sector_allocation",
    "portfolio_stats",
    "list_positions",
    "get_position",
    "value_portfolio",
    "portfolio_overview",
    "add_position",
    "update_position",
    "delete_position",
]
