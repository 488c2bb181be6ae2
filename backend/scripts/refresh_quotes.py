"""Refresh cached quotes for the given symbols (or the popular list)."""

from __future__ import annotations

import argparse
import asyncio
from datetime import timedelta

from portfolio_tracker.config import get_settings
from portfolio_tracker.core.logging import setup_logging
from portfolio_tracker.db.database import Database
from portfolio_tracker.providers.alpha_vantage import get_alpha_vantage_client
from portfolio_tracker.services.batch import BatchCoordinator
from portfolio_tracker.services.fetch_gate import FetchGate
from portfolio_tracker.services.quote_refresher import QuoteRefresher
from portfolio_tracker.services.quote_store import QuoteStore


async def _run(symbols: list[str], force: bool) -> int:
    settings = get_settings()
    setup_logging(settings.log_level)
    database = Database(settings.database_url)
    client = get_alpha_vantage_client(settings)
    if client is None:
        print("ALPHAVANTAGE_API_KEY is not set; only cached quotes can be reported")
    try:
        await database.create_all()
        refresher = QuoteRefresher(
            QuoteStore(database),
            client,
            FetchGate(settings.alphavantage_min_interval_seconds),
            freshness_window=timedelta(minutes=settings.quote_freshness_minutes),
        )
        coordinator = BatchCoordinator(refresher, max_batch_size=settings.quote_batch_max_symbols)
        targets = symbols or settings.popular_symbols
        result = await coordinator.batch_refresh(targets[: coordinator.max_batch_size], force=force)
    finally:
        if client is not None:
            await client.aclose()
        await database.dispose()

    stale = set(result.stale)
    for record in result.succeeded:
        marker = " (stale)" if record.symbol in stale else ""
        print(f"{record.symbol}: {record.price:.2f}{marker}")
    for failure in result.failed:
        print(f"{failure.symbol}: FAILED - {failure.error}")
    print(f"Updated {len(result.succeeded)} symbols, {len(result.failed)} errors")
    return 1 if result.failed and not result.succeeded else 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Refresh cached stock quotes from Alpha Vantage")
    parser.add_argument("symbols", nargs="*", help="Ticker symbols; defaults to the popular list")
    parser.add_argument("--force", action="store_true", help="Refetch even when the cached quote is fresh")
    args = parser.parse_args()

    raise SystemExit(asyncio.run(_run(args.symbols, args.force)))


if __name__ == "__main__":
    main()
