"""Failure taxonomy for the quote refresh path."""

from __future__ import annotations


class QuoteError(RuntimeError):
    """Base class for quote subsystem failures."""


class ProviderUnavailable(QuoteError):
    """The market-data provider failed or timed out and no cache could be used."""


class ProviderRateLimited(ProviderUnavailable):
    """The provider explicitly rejected a call because of its request quota."""


class StorageFailure(QuoteError):
    """The quote cache store could not be read or written."""


class SymbolNotFound(QuoteError):
    """No cached quote exists and a live lookup did not produce one."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"No data available for symbol: {symbol}")
        self.symbol = symbol


__all__ = [
    "QuoteError",
    "ProviderUnavailable",
    "ProviderRateLimited",
    "StorageFailure",
    "SymbolNotFound",
]
