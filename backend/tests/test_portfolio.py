"""Portfolio cost basis, valuation, and position persistence."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from fakes import FakeQuoteClient, overview, quote, sqlite_database
from portfolio_tracker.models import PortfolioPosition
from portfolio_tracker.schemas.quotes import QuoteRecord
from portfolio_tracker.services import portfolio as portfolio_service
from portfolio_tracker.services.fetch_gate import FetchGate
from portfolio_tracker.services.quote_refresher import QuoteRefresher
from portfolio_tracker.services.quote_store import QuoteStore

STAMP = datetime(2024, 5, 6, tzinfo=timezone.utc)


def _position(symbol: str, shares: float, average_cost: float, sector: str | None = None) -> PortfolioPosition:
    return PortfolioPosition(
        id=f"pos-{symbol}",
        user_id="user-1",
        symbol=symbol,
        shares=shares,
        average_cost=average_cost,
        sector=sector,
        last_updated=STAMP,
    )


def _record(symbol: str, price: float, **fields) -> QuoteRecord:
    return QuoteRecord(symbol=symbol, price=price, last_updated=STAMP, **fields)


def test_weighted_average_cost():
    assert portfolio_service.weighted_average_cost(10, 130.0, 5, 100.0) == pytest.approx(120.0)


def test_weighted_average_cost_requires_shares():
    with pytest.raises(ValueError):
        portfolio_service.weighted_average_cost(0, 10.0, 0, 12.0)


def test_value_position_uses_quote_price():
    valuation = portfolio_service.value_position(_position("AAPL", 10, 150.0), _record("AAPL", 180.0))

    assert not valuation.price_is_fallback
    assert valuation.total_value == pytest.approx(1800.0)
    assert valuation.total_cost == pytest.approx(1500.0)
    assert valuation.gain_loss == pytest.approx(300.0)
    assert valuation.gain_loss_percent == pytest.approx(20.0)


def test_value_position_falls_back_to_average_cost():
    valuation = portfolio_service.value_position(_position("ZZZZ", 4, 25.0), None)

    assert valuation.price_is_fallback
    assert valuation.current_price == pytest.approx(25.0)
    assert valuation.gain_loss == pytest.approx(0.0)


def test_summary_allocation_and_stats():
    valuations = portfolio_service.with_allocation(
        [
            portfolio_service.value_position(_position("AAPL", 10, 100.0, "Technology"), _record("AAPL", 150.0)),
            portfolio_service.value_position(_position("MSFT", 5, 100.0, "Technology"), _record("MSFT", 100.0)),
            portfolio_service.value_position(_position("XOM", 10, 100.0), _record("XOM", 80.0)),
        ]
    )

    summary = portfolio_service.summarize(valuations)
    assert summary.total_value == pytest.approx(2800.0)
    assert summary.total_cost == pytest.approx(2500.0)
    assert summary.total_gain_loss_percent == pytest.approx(12.0)
    assert sum(v.allocation for v in valuations) == pytest.approx(100.0)

    sectors, total_value = portfolio_service.sector_allocation(valuations)
    assert total_value == pytest.approx(2800.0)
    assert [s.sector for s in sectors] == ["Technology", "Unknown"]
    assert sectors[0].percentage == pytest.approx(2000.0 / 2800.0 * 100)
    assert [p.symbol for p in sectors[0].positions] == ["AAPL", "MSFT"]

    stats = portfolio_service.portfolio_stats(valuations)
    assert stats.top_performer.symbol == "AAPL"
    assert stats.worst_performer.symbol == "XOM"
    assert stats.unique_sectors == 2
    assert stats.diversification_score == pytest.approx(2 / 3 * 100)


def test_stats_for_empty_portfolio():
    stats = portfolio_service.portfolio_stats([])

    assert stats.total_positions == 0
    assert stats.top_performer is None
    assert stats.diversification_score == 0.0


@pytest.mark.asyncio
async def test_add_position_merges_with_weighted_average(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    client = FakeQuoteClient(
        quotes={"AAPL": quote(140.0)},
        overviews={"AAPL": overview(company_name="Apple Inc", sector="Technology", industry="Hardware")},
    )
    refresher = QuoteRefresher(QuoteStore(database), client, FetchGate(0))
    try:
        async with database.session() as session:
            first, created = await portfolio_service.add_position(session, refresher, "user-1", "aapl", 10, 130.0)
            assert created
            assert first.symbol == "AAPL"
            assert first.current_price == pytest.approx(140.0)
            assert first.sector == "Technology"
            assert first.company_name == "Apple Inc"

            merged, created = await portfolio_service.add_position(session, refresher, "user-1", "AAPL", 5, 100.0)
            assert not created
            assert merged.id == first.id
            assert merged.shares == pytest.approx(15)
            assert merged.average_cost == pytest.approx(120.0)

            positions = await portfolio_service.list_positions(session, "user-1")
            assert len(positions) == 1
            assert await portfolio_service.list_positions(session, "user-2") == []
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_concurrent_additions_to_one_holding_are_all_counted(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    refresher = QuoteRefresher(QuoteStore(database), FakeQuoteClient(), FetchGate(0))

    async def add(shares: float, average_cost: float):
        async with database.session() as session:
            return await portfolio_service.add_position(session, refresher, "user-1", "AAPL", shares, average_cost)

    try:
        _, created = await add(10, 130.0)
        assert created

        results = await asyncio.gather(add(5, 100.0), add(5, 100.0))
        assert [created for _, created in results] == [False, False]

        async with database.session() as session:
            positions = await portfolio_service.list_positions(session, "user-1")
        assert len(positions) == 1
        assert positions[0].shares == pytest.approx(20)
        assert positions[0].average_cost == pytest.approx(115.0)
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_concurrent_first_additions_create_one_holding(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    refresher = QuoteRefresher(QuoteStore(database), FakeQuoteClient(), FetchGate(0))

    async def add(shares: float, average_cost: float):
        async with database.session() as session:
            return await portfolio_service.add_position(session, refresher, "user-1", "MSFT", shares, average_cost)

    try:
        results = await asyncio.gather(add(4, 400.0), add(4, 420.0))
        assert sorted(created for _, created in results) == [False, True]

        async with database.session() as session:
            positions = await portfolio_service.list_positions(session, "user-1")
        assert len(positions) == 1
        assert positions[0].shares == pytest.approx(8)
        assert positions[0].average_cost == pytest.approx(410.0)
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_add_position_without_quote_still_succeeds(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    refresher = QuoteRefresher(QuoteStore(database), FakeQuoteClient(), FetchGate(0))
    try:
        async with database.session() as session:
            position, created = await portfolio_service.add_position(session, refresher, "user-1", "ZZZZ", 3, 12.5)
            assert created
            assert position.current_price is None

            valuations, summary = await portfolio_service.portfolio_overview(session, refresher, "user-1")
            assert valuations[0].price_is_fallback
            assert summary.total_value == pytest.approx(37.5)
            assert valuations[0].allocation == pytest.approx(100.0)
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_update_to_zero_shares_removes_position(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    refresher = QuoteRefresher(QuoteStore(database), FakeQuoteClient(quotes={"KO": quote(60.0)}), FetchGate(0))
    try:
        async with database.session() as session:
            position, _ = await portfolio_service.add_position(session, refresher, "user-1", "KO", 3, 55.0)

            edited = await portfolio_service.update_position(session, position, average_cost=58.0)
            assert edited is not None
            assert edited.average_cost == pytest.approx(58.0)
            assert edited.shares == pytest.approx(3)

            assert await portfolio_service.update_position(session, position, shares=0) is None
            assert await portfolio_service.get_position(session, "user-1", position.id) is None
    finally:
        await database.dispose()
