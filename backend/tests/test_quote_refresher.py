"""Quote refresher behaviour: freshness, stale fallback, and merging."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from fakes import FakeQuoteClient, VirtualClock, overview, quote, sqlite_database
from portfolio_tracker.errors import ProviderRateLimited, ProviderUnavailable
from portfolio_tracker.services.fetch_gate import FetchGate
from portfolio_tracker.services.quote_refresher import QuoteRefresher
from portfolio_tracker.services.quote_store import QuoteStore

NOW = datetime(2024, 5, 6, 14, 0, tzinfo=timezone.utc)


def _refresher(database, client) -> QuoteRefresher:
    return QuoteRefresher(QuoteStore(database), client, FetchGate(0), clock=lambda: NOW)


@pytest.mark.asyncio
async def test_stale_by_one_second_triggers_a_fetch(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    client = FakeQuoteClient(quotes={"AAPL": quote(191.0)})
    refresher = _refresher(database, client)
    try:
        await refresher.store.upsert("AAPL", quote(180.0, last_updated=NOW - timedelta(minutes=15, seconds=1)))

        refreshed = await refresher.refresh("AAPL")

        assert client.calls_for("quote") == ["AAPL"]
        assert refreshed.is_fresh
        assert refreshed.record.price == pytest.approx(191.0)
        assert refreshed.record.last_updated == NOW
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_recent_quote_is_served_without_fetching(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    client = FakeQuoteClient(quotes={"AAPL": quote(191.0)})
    refresher = _refresher(database, client)
    try:
        await refresher.store.upsert("AAPL", quote(180.0, last_updated=NOW - timedelta(minutes=14)))

        refreshed = await refresher.refresh("aapl")

        assert client.calls == []
        assert refreshed.is_fresh
        assert refreshed.record.price == pytest.approx(180.0)
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_force_refetches_a_fresh_quote(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    client = FakeQuoteClient(quotes={"AAPL": quote(191.0)})
    refresher = _refresher(database, client)
    try:
        await refresher.store.upsert("AAPL", quote(180.0, last_updated=NOW - timedelta(minutes=1)))

        refreshed = await refresher.refresh("AAPL", force=True)

        assert client.calls_for("quote") == ["AAPL"]
        assert refreshed.record.price == pytest.approx(191.0)
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_provider_failure_falls_back_to_stale_record(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    client = FakeQuoteClient()
    client.quote_failures["AAPL"] = ProviderRateLimited("Alpha Vantage API rate limit exceeded")
    refresher = _refresher(database, client)
    try:
        cached = await refresher.store.upsert(
            "AAPL", quote(180.0, sector="Technology", last_updated=NOW - timedelta(hours=2))
        )

        refreshed = await refresher.refresh("AAPL")

        assert not refreshed.is_fresh
        assert refreshed.record == cached
        assert await refresher.store.get("AAPL") == cached
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_no_cache_and_provider_failure_raises(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    refresher = _refresher(database, FakeQuoteClient())
    try:
        with pytest.raises(ProviderUnavailable):
            await refresher.refresh("ZZZZ")
        assert await refresher.store.get("ZZZZ") is None
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_quote_only_refresh_keeps_stored_overview(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    client = FakeQuoteClient(quotes={"MSFT": quote(415.0, change_percent=1.2)})
    refresher = _refresher(database, client)
    try:
        await refresher.store.upsert(
            "MSFT",
            quote(
                400.0,
                company_name="Microsoft Corp",
                sector="Technology",
                industry="Software",
                pe_ratio=35.1,
                last_updated=NOW - timedelta(hours=1),
            ),
        )

        refreshed = await refresher.refresh("MSFT")

        record = refreshed.record
        assert refreshed.is_fresh
        assert record.price == pytest.approx(415.0)
        assert record.company_name == "Microsoft Corp"
        assert record.sector == "Technology"
        assert record.industry == "Software"
        assert record.pe_ratio == pytest.approx(35.1)
    finally:
        await database.dispose()


class StampingClient(FakeQuoteClient):
    """Records the virtual time at which each outbound request is issued."""

    def __init__(self, clock: VirtualClock, **kwargs) -> None:
        super().__init__(**kwargs)
        self._clock = clock
        self.issued_at: list[float] = []

    async def global_quote(self, symbol: str):
        self.issued_at.append(self._clock())
        return await super().global_quote(symbol)

    async def company_overview(self, symbol: str):
        self.issued_at.append(self._clock())
        return await super().company_overview(symbol)


@pytest.mark.asyncio
async def test_quote_and_overview_each_take_a_gate_ticket(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    clock = VirtualClock()
    client = StampingClient(
        clock,
        quotes={"NVDA": quote(900.0)},
        overviews={"NVDA": overview(company_name="NVIDIA Corp", sector="Technology", market_cap=2200000000000)},
    )
    gate = FetchGate(12.0, clock=clock, sleep=clock.sleep)
    refresher = QuoteRefresher(QuoteStore(database), client, gate, clock=lambda: NOW)
    try:
        record = (await refresher.refresh("NVDA")).record

        assert record.company_name == "NVIDIA Corp"
        assert record.market_cap == 2200000000000
        assert gate.request_count == 2
        assert sorted(kind for kind, _ in client.calls) == ["overview", "quote"]
        assert client.issued_at == [100.0, 112.0]
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_back_to_back_refreshes_space_every_request(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    clock = VirtualClock()
    client = StampingClient(clock, quotes={"AAPL": quote(190.0), "MSFT": quote(415.0)})
    gate = FetchGate(12.0, clock=clock, sleep=clock.sleep)
    refresher = QuoteRefresher(QuoteStore(database), client, gate, clock=lambda: NOW)
    try:
        await refresher.refresh("AAPL")
        await refresher.refresh("MSFT")

        gaps = [later - earlier for earlier, later in zip(client.issued_at, client.issued_at[1:])]
        assert gate.request_count == 4
        assert len(gaps) == 3
        assert all(gap >= 12.0 for gap in gaps)
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_cache_only_mode_never_fabricates_quotes(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    refresher = _refresher(database, None)
    try:
        assert refresher.cache_only
        with pytest.raises(ProviderUnavailable):
            await refresher.refresh("AAPL")

        await refresher.store.upsert("AAPL", quote(180.0, last_updated=NOW - timedelta(days=1)))
        refreshed = await refresher.refresh("AAPL")
        assert not refreshed.is_fresh
        assert refreshed.record.price == pytest.approx(180.0)
    finally:
        await database.dispose()
