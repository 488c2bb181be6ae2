"""Retrieve-or-fallback quote access for stock and portfolio read paths."""

from __future__ import annotations

import logging
from typing import Iterable

from portfolio_tracker.errors import ProviderUnavailable, SymbolNotFound
from portfolio_tracker.schemas.quotes import QuoteRecord
from portfolio_tracker.services.batch import unique_symbols
from portfolio_tracker.services.quote_refresher import QuoteRefresh, QuoteRefresher

logger = logging.getLogger(__name__)


async def get_quote(refresher: QuoteRefresher, symbol: str) -> QuoteRefresh:
    """Quote for an explicitly requested symbol; ``SymbolNotFound`` if none can be had."""

    try:
        return await refresher.refresh(symbol)
    except ProviderUnavailable as exc:
        raise SymbolNotFound(symbol.strip().upper()) from exc


async def current_quotes(refresher: QuoteRefresher, symbols: Iterable[str]) -> dict[str, QuoteRecord]:
    """Best-effort quotes keyed by symbol; symbols with no quote at all are left out."""

    quotes: dict[str, QuoteRecord] = {}
    for symbol in unique_symbols(symbols):
        try:
            quotes[symbol] = (await refresher.refresh(symbol)).record
        except ProviderUnavailable as exc:
            logger.warning("Failed to update stock price for %s: %s", symbol, exc)
    return quotes


__all__ = ["current_quotes", "get_quote"]
