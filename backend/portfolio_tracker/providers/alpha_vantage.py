"""Alpha Vantage client and wire-format decoding for quotes and overviews."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Callable, Dict, Optional

import httpx

from portfolio_tracker.config import AppSettings
from portfolio_tracker.errors import ProviderRateLimited, ProviderUnavailable
from portfolio_tracker.schemas.quotes import QuoteUpdate

BASE_URL = "https://www.alphavantage.co/query"

logger = logging.getLogger(__name__)

_MISSING_MARKERS = {"", "none", "null", "-", "n/a", "nan"}


def _clean(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw).strip()
    if text.lower() in _MISSING_MARKERS:
        return None
    return text


def parse_text(raw: Any) -> Optional[str]:
    return _clean(raw)


def parse_decimal(raw: Any) -> Optional[float]:
    """Parse a provider number, accepting percent strings such as ``"1.33%"``.

    Unknown values stay ``None`` so they are never confused with zero.
    """

    text = _clean(raw)
    if text is None:
        return None
    text = text.rstrip("%").strip().replace(",", "")
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_count(raw: Any) -> Optional[int]:
    value = parse_decimal(raw)
    if value is None or value < 0:
        return None
    return int(value)


Decoder = Callable[[Any], Any]

GLOBAL_QUOTE_KEYS: Dict[str, tuple[str, Decoder]] = {
    "price": ("05. price", parse_decimal),
    "previous_close": ("08. previous close", parse_decimal),
    "change": ("09. change", parse_decimal),
    "change_percent": ("10. change percent", parse_decimal),
    "volume": ("06. volume", parse_count),
}

OVERVIEW_KEYS: Dict[str, tuple[str, Decoder]] = {
    "company_name": ("Name", parse_text),
    "sector": ("Sector", parse_text),
    "industry": ("Industry", parse_text),
    "market_cap": ("MarketCapitalization", parse_count),
    "pe_ratio": ("PERatio", parse_decimal),
    "dividend_yield": ("DividendYield", parse_decimal),
    "week_high_52": ("52WeekHigh", parse_decimal),
    "week_low_52": ("52WeekLow", parse_decimal),
    "beta": ("Beta", parse_decimal),
    "eps": ("EPS", parse_decimal),
}


def _decode_fields(block: dict[str, Any], keys: Dict[str, tuple[str, Decoder]]) -> dict[str, Any]:
    return {field: decode(block.get(wire_key)) for field, (wire_key, decode) in keys.items()}


def decode_global_quote(payload: dict[str, Any], symbol: str) -> QuoteUpdate:
    """Map a GLOBAL_QUOTE response onto the quote fields of a ``QuoteUpdate``."""

    block = payload.get("Global Quote")
    if not isinstance(block, dict) or not block:
        raise ProviderUnavailable(f"No data found for symbol: {symbol}")
    fields = _decode_fields(block, GLOBAL_QUOTE_KEYS)
    if fields["price"] is None:
        raise ProviderUnavailable(f"Quote for {symbol} carries no price")
    return QuoteUpdate(**fields)


def decode_company_overview(payload: dict[str, Any], symbol: str) -> QuoteUpdate:
    """Map an OVERVIEW response onto the descriptive fields of a ``QuoteUpdate``."""

    if not payload.get("Symbol"):
        raise ProviderUnavailable(f"No company data found for symbol: {symbol}")
    return QuoteUpdate(**_decode_fields(payload, OVERVIEW_KEYS))


class AlphaVantageClient:
    """Alpha Vantage client translating provider failures into quote errors.

    Pacing is not applied here; callers acquire the shared ``FetchGate``
    before issuing requests.
    """

    def __init__(
        self,
        api_key: str,
        *,
        timeout_seconds: float = 10.0,
        base_url: str = BASE_URL,
        client: Any | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Alpha Vantage API key not configured")
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout_seconds
        self._client = client or httpx.AsyncClient()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, params: dict[str, Any]) -> dict[str, Any]:
        function = params.get("function")
        query = {**params, "apikey": self._api_key}
        try:
            # httpx applies the timeout per phase; wait_for bounds the whole request
            response = await asyncio.wait_for(
                self._client.get(self._base_url, params=query, timeout=self._timeout),
                self._timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise ProviderUnavailable(f"Alpha Vantage {function} request timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"Alpha Vantage {function} request failed: {exc}") from exc

        if response.status_code == 429:
            raise ProviderRateLimited("Alpha Vantage API rate limit exceeded")
        if response.status_code >= 400:
            raise ProviderUnavailable(f"Alpha Vantage returned HTTP {response.status_code} for {function}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderUnavailable(f"Alpha Vantage returned a non-JSON payload for {function}") from exc
        if not isinstance(payload, dict):
            raise ProviderUnavailable(f"Unexpected Alpha Vantage payload type: {type(payload).__name__}")

        if payload.get("Error Message"):
            raise ProviderUnavailable(f"Alpha Vantage API Error: {payload['Error Message']}")
        if payload.get("Note"):
            raise ProviderRateLimited("Alpha Vantage API rate limit exceeded")
        information = payload.get("Information")
        if isinstance(information, str) and "rate limit" in information.lower():
            raise ProviderRateLimited(f"Alpha Vantage API rate limit exceeded: {information}")
        return payload

    async def global_quote(self, symbol: str) -> QuoteUpdate:
        symbol = symbol.upper()
        payload = await self._request({"function": "GLOBAL_QUOTE", "symbol": symbol})
        return decode_global_quote(payload, symbol)

    async def company_overview(self, symbol: str) -> QuoteUpdate:
        symbol = symbol.upper()
        payload = await self._request({"function": "OVERVIEW", "symbol": symbol})
        return decode_company_overview(payload, symbol)

    async def daily_adjusted(self, symbol: str, output: str = "compact") -> dict[str, Any]:
        return await self._request(
            {"function": "TIME_SERIES_DAILY_ADJUSTED", "symbol": symbol.upper(), "outputsize": output}
        )

    async def intraday(self, symbol: str, interval: str = "5min") -> dict[str, Any]:
        return await self._request(
            {"function": "TIME_SERIES_INTRADAY", "symbol": symbol.upper(), "interval": interval}
        )


def get_alpha_vantage_client(settings: AppSettings) -> AlphaVantageClient | None:
    """Build the provider client, or ``None`` to run quotes in cache-only mode."""

    if not settings.alphavantage_api_key:
        logger.warning("ALPHAVANTAGE_API_KEY not set; quotes will be served from cache only")
        return None
    return AlphaVantageClient(
        settings.alphavantage_api_key,
        timeout_seconds=settings.alphavantage_timeout_seconds,
        base_url=settings.alphavantage_base_url,
    )


__all__ = [
    "AlphaVantageClient",
    "BASE_URL",
    "decode_company_overview",
    "decode_global_quote",
    "get_alpha_vantage_client",
    "parse_count",
    "parse_decimal",
    "parse_text",
]
