"""Serve a current quote per symbol, refetching only when the cache is stale."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, NamedTuple

from opentelemetry import trace

from portfolio_tracker.errors import ProviderRateLimited, ProviderUnavailable
from portfolio_tracker.schemas.quotes import QuoteRecord, QuoteUpdate
from portfolio_tracker.services.fetch_gate import FetchGate
from portfolio_tracker.services.quote_store import QuoteStore, as_utc, normalize_symbol

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)

DEFAULT_FRESHNESS_WINDOW = timedelta(minutes=15)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuoteRefresh(NamedTuple):
    record: QuoteRecord
    is_fresh: bool


class QuoteRefresher:
    """Stale-cache-backed quote lookup.

    A cached quote younger than ``freshness_window`` is returned untouched.
    Otherwise the quote and company overview are requested concurrently, each
    after taking its own gate ticket. Provider failures fall back to the
    cached record (``is_fresh=False``) and only surface as
    ``ProviderUnavailable`` when nothing is cached. Storage failures always
    propagate.

    ``client`` may be ``None`` (no API key): the refresher then serves the
    cache only and never fabricates quotes.
    """

    def __init__(
        self,
        store: QuoteStore,
        client: Any | None,
        gate: FetchGate,
        *,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._client = client
        self._gate = gate
        self.freshness_window = freshness_window
        self._clock = clock

    @property
    def cache_only(self) -> bool:
        return self._client is None

    @property
    def store(self) -> QuoteStore:
        return self._store

    def is_fresh(self, record: QuoteRecord, now: datetime | None = None) -> bool:
        reference = now or self._clock()
        return reference - as_utc(record.last_updated) <= self.freshness_window

    async def refresh(self, symbol: str, *, force: bool = False) -> QuoteRefresh:
        """Return the current quote for ``symbol``.

        ``force`` skips the freshness check (admin-triggered updates) but
        keeps the stale fallback.
        """

        normalized = normalize_symbol(symbol)
        with _tracer.start_as_current_span("quote.refresh") as span:
            span.set_attribute("quote.symbol", normalized)
            cached = await self._store.get(normalized)
            if cached is not None and not force and self.is_fresh(cached):
                span.set_attribute("quote.outcome", "cache_hit")
                return QuoteRefresh(cached, True)

            try:
                update = await self._fetch(normalized)
            except ProviderUnavailable as exc:
                if cached is None:
                    span.set_attribute("quote.outcome", "unavailable")
                    raise
                logger.warning("Using stale data for %s: %s", normalized, exc)
                span.set_attribute("quote.outcome", "stale_fallback")
                return QuoteRefresh(cached, False)

            record = await self._store.upsert(normalized, update)
            span.set_attribute("quote.outcome", "refreshed")
            logger.info("%s quote data for %s", "Updated" if cached else "Created", normalized)
            return QuoteRefresh(record, True)

    async def _fetch(self, symbol: str) -> QuoteUpdate:
        if self._client is None:
            raise ProviderUnavailable(f"No market-data provider configured; cannot refresh {symbol}")

        quote, overview = await asyncio.gather(
            self._paced(self._client.global_quote, symbol),
            self._paced(self._client.company_overview, symbol),
            return_exceptions=True,
        )

        if isinstance(overview, BaseException):
            _log_lookup_failure("company overview", symbol, overview)
        if isinstance(quote, BaseException):
            _log_lookup_failure("quote", symbol, quote)
            # Only ProviderUnavailable enters the stale fallback in refresh()
            raise quote

        update = quote.merged_with(QuoteUpdate(last_updated=self._clock()))
        if not isinstance(overview, BaseException):
            update = update.merged_with(overview)
        return update

    async def _paced(self, lookup: Callable[[str], Awaitable[QuoteUpdate]], symbol: str) -> QuoteUpdate:
        # Every outbound request takes its own ticket
        await self._gate.acquire()
        return await lookup(symbol)


def _log_lookup_failure(lookup: str, symbol: str, exc: BaseException) -> None:
    if isinstance(exc, ProviderRateLimited):
        logger.warning("Alpha Vantage rate limit hit during %s lookup for %s", lookup, symbol)
    elif isinstance(exc, ProviderUnavailable):
        logger.warning("Failed to get %s for %s: %s", lookup, symbol, exc)
    else:
        logger.error("Unexpected error during %s lookup for %s", lookup, symbol, exc_info=exc)


__all__ = ["DEFAULT_FRESHNESS_WINDOW", "QuoteRefresh", "QuoteRefresher"]
