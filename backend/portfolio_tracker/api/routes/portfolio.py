"""Portfolio endpoints scoped to the calling user."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_tracker.api.dependencies import RequestContext, get_db_session, get_refresher, get_request_context
from portfolio_tracker.errors import StorageFailure
from portfolio_tracker.schemas.portfolio import (
    AllocationResponse,
    PortfolioResponse,
    PortfolioStatsSchema,
    PortfolioSummarySchema,
    PositionCreateRequest,
    PositionMutationResponse,
    PositionSchema,
    PositionUpdateRequest,
    PositionValuationSchema,
    SectorAllocationSchema,
)
from portfolio_tracker.services import portfolio as portfolio_service
from portfolio_tracker.services.quote_refresher import QuoteRefresher

router = APIRouter()
logger = logging.getLogger(__name__)


def _storage_unavailable(exc: StorageFailure) -> HTTPException:
    logger.error("Quote storage failure while valuing portfolio: %s", exc)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Quote storage unavailable")


@router.get("/", response_model=PortfolioResponse)
async def read_portfolio(
    session: AsyncSession = Depends(get_db_session),
    refresher: QuoteRefresher = Depends(get_refresher),
    context: RequestContext = Depends(get_request_context),
) -> PortfolioResponse:
    try:
        valuations, summary = await portfolio_service.portfolio_overview(session, refresher, context.user_id)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    return PortfolioResponse(
        portfolio=[PositionValuationSchema.model_validate(v) for v in valuations],
        summary=PortfolioSummarySchema.model_validate(summary),
    )


@router.post("/positions", response_model=PositionMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_position(
    payload: PositionCreateRequest,
    session: AsyncSession = Depends(get_db_session),
    refresher: QuoteRefresher = Depends(get_refresher),
    context: RequestContext = Depends(get_request_context),
) -> PositionMutationResponse:
    try:
        position, created = await portfolio_service.add_position(
            session,
            refresher,
            context.user_id,
            payload.symbol,
            payload.shares,
            payload.average_cost,
        )
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    message = "Position added successfully" if created else "Position updated successfully"
    return PositionMutationResponse(message=message, position=PositionSchema.model_validate(position))


@router.put("/positions/{position_id}", response_model=PositionMutationResponse)
async def edit_position(
    position_id: str,
    payload: PositionUpdateRequest,
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> PositionMutationResponse:
    position = await portfolio_service.get_position(session, context.user_id, position_id)
    if position is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Position not found")

    updated = await portfolio_service.update_position(
        session,
        position,
        shares=payload.shares,
        average_cost=payload.average_cost,
    )
    if updated is None:
        return PositionMutationResponse(message="Position removed successfully")
    return PositionMutationResponse(message="Position updated successfully", position=PositionSchema.model_validate(updated))


@router.delete("/positions/{position_id}", response_model=PositionMutationResponse)
async def remove_position(
    position_id: str,
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> PositionMutationResponse:
    position = await portfolio_service.get_position(session, context.user_id, position_id)
    if position is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Position not found")
    await portfolio_service.delete_position(session, position)
    return PositionMutationResponse(message="Position removed successfully")


@router.get("/allocation", response_model=AllocationResponse)
async def read_allocation(
    session: AsyncSession = Depends(get_db_session),
    refresher: QuoteRefresher = Depends(get_refresher),
    context: RequestContext = Depends(get_request_context),
) -> AllocationResponse:
    try:
        valuations = await portfolio_service.value_portfolio(session, refresher, context.user_id)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    sectors, total_value = portfolio_service.sector_allocation(valuations)
    return AllocationResponse(
        sectors=[SectorAllocationSchema.model_validate(s) for s in sectors],
        total_value=total_value,
    )


@router.get("/stats", response_model=PortfolioStatsSchema)
async def read_stats(
    session: AsyncSession = Depends(get_db_session),
    refresher: QuoteRefresher = Depends(get_refresher),
    context: RequestContext = Depends(get_request_context),
) -> PortfolioStatsSchema:
    try:
        valuations = await portfolio_service.value_portfolio(session, refresher, context.user_id)
    except StorageFailure as exc:
        raise _storage_unavailable(exc) from exc
    return PortfolioStatsSchema.model_validate(portfolio_service.portfolio_stats(valuations))


__all__ = ["router"]
