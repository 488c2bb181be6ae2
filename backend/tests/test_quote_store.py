"""Quote cache store tests against a temporary SQLite database."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fakes import quote, sqlite_database
from portfolio_tracker.errors import StorageFailure
from portfolio_tracker.schemas.quotes import QuoteUpdate
from portfolio_tracker.services.quote_store import QuoteStore, normalize_symbol


def test_normalize_symbol_uppercases_and_validates():
    assert normalize_symbol("  msft ") == "MSFT"
    with pytest.raises(ValueError):
        normalize_symbol("   ")
    with pytest.raises(ValueError):
        normalize_symbol("X" * 11)


@pytest.mark.asyncio
async def test_upsert_creates_then_merges(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    store = QuoteStore(database)
    try:
        created = await store.upsert(
            "aapl",
            quote(190.5, change_percent=1.33, company_name="Apple Inc", sector="Technology"),
        )
        assert created.symbol == "AAPL"
        assert created.last_updated.tzinfo is not None

        merged = await store.upsert("AAPL", quote(192.0, change_percent=0.8))
        assert merged.price == pytest.approx(192.0)
        assert merged.change_percent == pytest.approx(0.8)
        assert merged.company_name == "Apple Inc"
        assert merged.sector == "Technology"
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_explicit_none_clears_a_field(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    store = QuoteStore(database)
    try:
        await store.upsert("KO", quote(60.0, beta=0.6))
        cleared = await store.upsert("KO", QuoteUpdate(beta=None))
        assert cleared.beta is None
        assert cleared.price == pytest.approx(60.0)
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_price_cannot_be_cleared(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    store = QuoteStore(database)
    try:
        with pytest.raises(ValueError):
            await store.upsert("KO", QuoteUpdate(price=None))
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_upsert_keeps_supplied_timestamp(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    store = QuoteStore(database)
    stamp = datetime(2024, 3, 1, 15, 30, tzinfo=timezone.utc)
    try:
        record = await store.upsert("IBM", quote(180.0, last_updated=stamp))
        assert record.last_updated == stamp
        assert (await store.get("ibm")).last_updated == stamp
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_read_helpers(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    store = QuoteStore(database)
    now = datetime.now(timezone.utc)
    try:
        await store.upsert("AAPL", quote(190.0, change_percent=1.5, sector="Technology", company_name="Apple Inc", market_cap=3000))
        await store.upsert("MSFT", quote(410.0, change_percent=-0.7, sector="Technology", company_name="Microsoft Corp", market_cap=3100))
        await store.upsert("XOM", quote(110.0, change_percent=2.4, sector="Energy", company_name="Exxon Mobil", last_updated=now - timedelta(days=1)))

        assert await store.get("NOPE") is None
        assert [r.symbol for r in await store.search("apple")] == ["AAPL"]
        assert [r.symbol for r in await store.search("ms")] == ["MSFT"]
        assert [r.symbol for r in await store.movers("gainers")] == ["XOM", "AAPL"]
        assert [r.symbol for r in await store.movers("losers")] == ["MSFT"]
        assert [r.symbol for r in await store.by_sector("Technology")] == ["MSFT", "AAPL"]
        assert await store.sectors() == [("Technology", 2), ("Energy", 1)]
        assert [r.symbol for r in await store.many(["xom", "aapl", "tsla"])] == ["AAPL", "XOM"]
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_database_errors_surface_as_storage_failure(tmp_path: Path):
    database = sqlite_database(tmp_path)
    store = QuoteStore(database)
    try:
        # No tables created
        with pytest.raises(StorageFailure):
            await store.get("AAPL")
        with pytest.raises(StorageFailure):
            await store.upsert("AAPL", quote(1.0))
    finally:
        await database.dispose()
