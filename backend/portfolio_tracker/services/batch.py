"""Sequential quote refresh over a bounded list of symbols."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from portfolio_tracker.errors import ProviderUnavailable, StorageFailure, SymbolNotFound
from portfolio_tracker.schemas.quotes import QuoteRecord
from portfolio_tracker.services.quote_refresher import QuoteRefresher

logger = logging.getLogger(__name__)


@dataclass
class BatchFailure:
    symbol: str
    error: str


@dataclass
class BatchResult:
    succeeded: list[QuoteRecord] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)
    # Symbols whose refresh fell back to a stale cached quote
    stale: list[str] = field(default_factory=list)


def unique_symbols(symbols: Iterable[str]) -> list[str]:
    """Uppercase, drop blanks and duplicates, keep first-seen order."""

    seen: set[str] = set()
    ordered: list[str] = []
    for symbol in symbols:
        value = str(symbol).strip().upper()
        if not value or value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


class BatchCoordinator:
    """Drive the refresher one symbol at a time.

    Symbols run sequentially so the single fetch gate paces the whole batch.
    A provider failure or an invalid symbol is recorded and the batch moves
    on; a ``StorageFailure`` aborts the batch because the shared store is
    unusable for every remaining symbol.
    """

    def __init__(self, refresher: QuoteRefresher, *, max_batch_size: int = 20) -> None:
        self._refresher = refresher
        self.max_batch_size = max_batch_size

    async def batch_refresh(self, symbols: Iterable[str], *, force: bool = False) -> BatchResult:
        targets = unique_symbols(symbols)
        if len(targets) > self.max_batch_size:
            raise ValueError(f"Maximum {self.max_batch_size} symbols allowed per batch")

        result = BatchResult()
        for symbol in targets:
            try:
                refreshed = await self._refresher.refresh(symbol, force=force)
            except StorageFailure:
                raise
            except (ProviderUnavailable, SymbolNotFound, ValueError) as exc:
                logger.warning("Batch refresh failed for %s: %s", symbol, exc)
                result.failed.append(BatchFailure(symbol=symbol, error=str(exc)))
                continue
            result.succeeded.append(refreshed.record)
            if not refreshed.is_fresh:
                result.stale.append(symbol)

        logger.info(
            "Batch refresh finished: target_count=%d succeeded=%d stale=%d failed=%d",
            len(targets),
            len(result.succeeded),
            len(result.stale),
            len(result.failed),
        )
        return result


__all__ = ["BatchCoordinator", "BatchFailure", "BatchResult", "unique_symbols"]
