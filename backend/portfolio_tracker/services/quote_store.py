"""Durable cache of the last known quote per symbol."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Literal, Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from portfolio_tracker.db.database import Database, upsert_insert
from portfolio_tracker.errors import StorageFailure
from portfolio_tracker.models import StockQuote
from portfolio_tracker.schemas.quotes import QuoteRecord, QuoteUpdate

logger = logging.getLogger(__name__)


def normalize_symbol(symbol: str) -> str:
    normalized = str(symbol).strip().upper()
    if not normalized or len(normalized) > 10:
        raise ValueError(f"Invalid ticker symbol: {symbol!r}")
    return normalized


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite drops the offset) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(row: StockQuote) -> QuoteRecord:
    record = QuoteRecord.model_validate(row)
    record.last_updated = as_utc(record.last_updated)
    return record


class QuoteStore:
    """Read and merge-or-create ``stock_quote`` rows.

    Every database error surfaces as ``StorageFailure``.
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._insert = upsert_insert(database.dialect)

    async def get(self, symbol: str) -> QuoteRecord | None:
        normalized = normalize_symbol(symbol)
        rows = await self._read(
            f"read cached quote for {normalized}",
            select(StockQuote).where(StockQuote.symbol == normalized),
        )
        return rows[0] if rows else None

    async def upsert(self, symbol: str, update: QuoteUpdate) -> QuoteRecord:
        """Write the assigned fields of ``update``, creating the row if needed.

        Runs as one ``INSERT ... ON CONFLICT DO UPDATE`` so readers never see
        a partially merged row; unassigned fields keep their stored values.
        """

        normalized = normalize_symbol(symbol)
        changes: dict[str, Any] = update.changes()
        if "price" in changes and changes["price"] is None:
            raise ValueError("A cached quote must always carry a price")
        changes.setdefault("last_updated", datetime.now(timezone.utc))

        stmt = (
            self._insert(StockQuote)
            .values(symbol=normalized, **changes)
            .on_conflict_do_update(index_elements=[StockQuote.symbol], set_=changes)
        )
        try:
            async with self._database.session() as session:
                await session.execute(stmt)
                row = (
                    await session.execute(select(StockQuote).where(StockQuote.symbol == normalized))
                ).scalar_one()
                record = _to_record(row)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to upsert cached quote for %s: %s", normalized, exc)
            raise StorageFailure(f"Failed to store quote for {normalized}") from exc
        logger.debug("Upserted cached quote for %s (%d fields)", normalized, len(changes))
        return record

    async def many(self, symbols: Sequence[str], limit: int | None = None) -> list[QuoteRecord]:
        normalized = [normalize_symbol(s) for s in symbols]
        stmt = (
            select(StockQuote)
            .where(StockQuote.symbol.in_(normalized))
            .order_by(StockQuote.market_cap.desc().nulls_last(), StockQuote.symbol)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._read("read cached quotes", stmt)

    async def search(self, term: str, limit: int = 10) -> list[QuoteRecord]:
        needle = term.strip()
        stmt = (
            select(StockQuote)
            .where(
                or_(
                    StockQuote.symbol.ilike(f"{needle}%"),
                    StockQuote.company_name.ilike(f"%{needle}%"),
                )
            )
            .order_by(StockQuote.symbol)
            .limit(limit)
        )
        return await self._read(f"search cached quotes for {needle!r}", stmt)

    async def movers(self, direction: Literal["gainers", "losers"], limit: int = 10) -> list[QuoteRecord]:
        if direction == "gainers":
            stmt = (
                select(StockQuote)
                .where(StockQuote.change_percent > 0)
                .order_by(StockQuote.change_percent.desc())
            )
        else:
            stmt = (
                select(StockQuote)
                .where(StockQuote.change_percent < 0)
                .order_by(StockQuote.change_percent.asc())
            )
        return await self._read(f"read top {direction}", stmt.limit(limit))

    async def by_sector(self, sector: str, limit: int = 20) -> list[QuoteRecord]:
        stmt = (
            select(StockQuote)
            .where(StockQuote.sector == sector)
            .order_by(StockQuote.market_cap.desc().nulls_last(), StockQuote.symbol)
            .limit(limit)
        )
        return await self._read(f"read sector {sector!r}", stmt)

    async def sectors(self) -> list[tuple[str, int]]:
        count = func.count(StockQuote.sector)
        stmt = (
            select(StockQuote.sector, count)
            .where(StockQuote.sector.is_not(None))
            .group_by(StockQuote.sector)
            .order_by(count.desc(), StockQuote.sector)
        )
        try:
            async with self._database.session() as session:
                result = await session.execute(stmt)
                return [(name, int(total)) for name, total in result.all()]
        except SQLAlchemyError as exc:
            raise StorageFailure("Failed to read sector counts") from exc

    async def _read(self, description: str, stmt: Select) -> list[QuoteRecord]:
        try:
            async with self._database.session() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            logger.error("Failed to %s: %s", description, exc)
            raise StorageFailure(f"Failed to {description}") from exc


__all__ = ["QuoteStore", "as_utc", "normalize_symbol"]
