"""Stock endpoints: cached quotes, batch lookups, history, and admin refresh."""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from portfolio_tracker.api.dependencies import (
    get_app_settings,
    get_batch_coordinator,
    get_fetch_gate,
    get_quote_client,
    get_quote_store,
    get_refresher,
)
from portfolio_tracker.config import AppSettings
from portfolio_tracker.errors import ProviderUnavailable, StorageFailure, SymbolNotFound
from portfolio_tracker.schemas.quotes import (
    AdminUpdateRequest,
    AdminUpdateResponse,
    HistoryPeriod,
    HistoryPointSchema,
    HistoryResponse,
    MoversResponse,
    QuoteBatchRequest,
    QuoteBatchResponse,
    SectorCountSchema,
    SectorsResponse,
    SectorStocksResponse,
    StockListResponse,
    StockQuoteResponse,
    StockQuoteSchema,
    SymbolErrorSchema,
)
from portfolio_tracker.services.batch import BatchCoordinator, unique_symbols
from portfolio_tracker.services.fetch_gate import FetchGate
from portfolio_tracker.services.market_data import load_history
from portfolio_tracker.services.quote_refresher import QuoteRefresher
from portfolio_tracker.services.quote_store import QuoteStore
from portfolio_tracker.services.quotes import get_quote

router = APIRouter()
logger = logging.getLogger(__name__)

ADMIN_DEFAULT_SYMBOL_COUNT = 10


def _storage_unavailable(exc: StorageFailure) -> HTTPException:
    logger.error("Quote storage failure: %s", exc)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Quote storage unavailable")


@router.get("/search", response_model=StockListResponse)
async def search_stocks(
    q: str = Query(..., min_length=1, description="Ticker prefix or company name fragment"),
    limit: int = Query(10, ge=1, le=50),
    store: QuoteStore = Depends(get_quote_store),
) -> StockListResponse:
    try:
        stocks = await store.search(q, limit)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    return StockListResponse(stocks=stocks)


@router.get("/quote/{symbol}", response_model=StockQuoteResponse)
async def read_quote(
    symbol: str = Path(..., min_length=1, max_length=10),
    refresher: QuoteRefresher = Depends(get_refresher),
) -> StockQuoteResponse:
    try:
        refreshed = await get_quote(refresher, symbol)
    except SymbolNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    stock = StockQuoteSchema(**refreshed.record.model_dump(), is_fresh=refreshed.is_fresh)
    return StockQuoteResponse(stock=stock)


@router.post("/quotes", response_model=QuoteBatchResponse)
async def read_quotes(
    payload: QuoteBatchRequest,
    coordinator: BatchCoordinator = Depends(get_batch_coordinator),
) -> QuoteBatchResponse:
    symbols = unique_symbols(payload.symbols)
    if len(symbols) > coordinator.max_batch_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Maximum {coordinator.max_batch_size} symbols allowed per request",
        )
    try:
        result = await coordinator.batch_refresh(symbols)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc

    stale = set(result.stale)
    stocks = [
        StockQuoteSchema(**record.model_dump(), is_fresh=record.symbol not in stale) for record in result.succeeded
    ]
    errors = [SymbolErrorSchema(symbol=failure.symbol, error=failure.error) for failure in result.failed]
    return QuoteBatchResponse(stocks=stocks, errors=errors)


@router.get("/history/{symbol}", response_model=HistoryResponse)
async def read_history(
    symbol: str = Path(..., min_length=1, max_length=10),
    period: HistoryPeriod = Query("1m"),
    client: Any = Depends(get_quote_client),
    gate: FetchGate = Depends(get_fetch_gate),
) -> HistoryResponse:
    normalized = symbol.strip().upper()
    try:
        points = await load_history(client, gate, normalized, period)
    except ProviderUnavailable as exc:
        logger.warning("Historical data not available for %s: %s", normalized, exc)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No historical data found for symbol: {normalized}",
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return HistoryResponse(
        symbol=normalized,
        period=period,
        data=[HistoryPointSchema(**point) for point in points],
    )


@router.get("/movers", response_model=MoversResponse)
async def read_movers(
    type: Literal["gainers", "losers"] = Query("gainers"),
    limit: int = Query(10, ge=1, le=50),
    store: QuoteStore = Depends(get_quote_store),
) -> MoversResponse:
    try:
        stocks = await store.movers(type, limit)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    return MoversResponse(type=type, stocks=stocks)


@router.get("/sector/{sector_name}", response_model=SectorStocksResponse)
async def read_sector(
    sector_name: str = Path(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    store: QuoteStore = Depends(get_quote_store),
) -> SectorStocksResponse:
    try:
        stocks = await store.by_sector(sector_name, limit)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    return SectorStocksResponse(sector=sector_name, stocks=stocks)


@router.get("/sectors", response_model=SectorsResponse)
async def read_sectors(store: QuoteStore = Depends(get_quote_store)) -> SectorsResponse:
    try:
        counts = await store.sectors()
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    return SectorsResponse(sectors=[SectorCountSchema(name=name, count=count) for name, count in counts])


@router.get("/popular", response_model=StockListResponse)
async def read_popular(
    limit: int = Query(20, ge=1, le=50),
    store: QuoteStore = Depends(get_quote_store),
    settings: AppSettings = Depends(get_app_settings),
) -> StockListResponse:
    try:
        stocks = await store.many(settings.popular_symbols, limit)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    return StockListResponse(stocks=stocks)


@router.post("/admin/update", response_model=AdminUpdateResponse)
async def admin_update(
    payload: AdminUpdateRequest | None = None,
    coordinator: BatchCoordinator = Depends(get_batch_coordinator),
    settings: AppSettings = Depends(get_app_settings),
) -> AdminUpdateResponse:
    """Force-refresh the given symbols, or the leading popular symbols."""

    if payload is not None and payload.symbols:
        symbols = unique_symbols(payload.symbols)[: coordinator.max_batch_size]
    else:
        symbols = settings.popular_symbols[:ADMIN_DEFAULT_SYMBOL_COUNT]

    try:
        result = await coordinator.batch_refresh(symbols, force=True)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    logger.info("Admin stock update finished: updated=%d errors=%d", len(result.succeeded), len(result.failed))
    return AdminUpdateResponse(
        updated=len(result.succeeded),
        errors=len(result.failed),
        stale=result.stale,
        succeeded=result.succeeded,
        failed=[SymbolErrorSchema(symbol=f.symbol, error=f.error) for f in result.failed],
    )


__all__ = ["router"]
