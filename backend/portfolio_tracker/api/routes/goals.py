"""Savings goal endpoints scoped to the calling user."""

from __future__ import annotations

import math
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_tracker.api.dependencies import RequestContext, get_db_session, get_request_context
from portfolio_tracker.models import Goal
from portfolio_tracker.schemas.goals import (
    GoalCategory,
    GoalCreateRequest,
    GoalListResponse,
    GoalMutationResponse,
    GoalPriority,
    GoalProgressRequest,
    GoalSchema,
    GoalStatsSchema,
    GoalUpdateRequest,
    PaginationSchema,
)
from portfolio_tracker.services import goals as goal_service

router = APIRouter()


def _goal_schema(goal: Goal) -> GoalSchema:
    metrics = goal_service.goal_metrics(goal)
    return GoalSchema.model_validate(goal).model_copy(update=asdict(metrics))


async def _owned_goal(session: AsyncSession, context: RequestContext, goal_id: str) -> Goal:
    goal = await goal_service.get_goal(session, context.user_id, goal_id)
    if goal is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Goal does not exist or you do not have permission to access it",
        )
    return goal


@router.get("/", response_model=GoalListResponse)
async def list_goals(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[GoalCategory] = Query(None),
    priority: Optional[GoalPriority] = Query(None),
    is_active: Optional[bool] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> GoalListResponse:
    goals, total = await goal_service.list_goals(
        session,
        context.user_id,
        category=category,
        priority=priority,
        is_active=is_active,
        page=page,
        limit=limit,
    )
    return GoalListResponse(
        goals=[_goal_schema(goal) for goal in goals],
        pagination=PaginationSchema(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
            items_per_page=limit,
        ),
    )


@router.get("/stats/overview", response_model=GoalStatsSchema)
async def goal_stats(
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> GoalStatsSchema:
    stats = await goal_service.goal_stats(session, context.user_id)
    return GoalStatsSchema.model_validate(stats)


@router.get("/{goal_id}", response_model=GoalSchema)
async def read_goal(
    goal_id: str,
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> GoalSchema:
    return _goal_schema(await _owned_goal(session, context, goal_id))


@router.post("/", response_model=GoalMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_goal(
    payload: GoalCreateRequest,
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> GoalMutationResponse:
    goal = await goal_service.create_goal(session, context.user_id, payload.model_dump())
    return GoalMutationResponse(message="Goal created successfully", goal=_goal_schema(goal))


@router.put("/{goal_id}", response_model=GoalMutationResponse)
async def update_goal(
    goal_id: str,
    payload: GoalUpdateRequest,
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> GoalMutationResponse:
    goal = await _owned_goal(session, context, goal_id)
    goal = await goal_service.update_goal(session, goal, payload.model_dump(exclude_unset=True))
    return GoalMutationResponse(message="Goal updated successfully", goal=_goal_schema(goal))


@router.delete("/{goal_id}", response_model=GoalMutationResponse)
async def delete_goal(
    goal_id: str,
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> GoalMutationResponse:
    goal = await _owned_goal(session, context, goal_id)
    await goal_service.delete_goal(session, goal)
    return GoalMutationResponse(message="Goal deleted successfully")


@router.post("/{goal_id}/progress", response_model=GoalMutationResponse)
async def update_progress(
    goal_id: str,
    payload: GoalProgressRequest,
    session: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_request_context),
) -> GoalMutationResponse:
    goal = await _owned_goal(session, context, goal_id)
    goal = await goal_service.adjust_progress(session, goal, payload.amount, payload.type)
    return GoalMutationResponse(message="Goal progress updated successfully", goal=_goal_schema(goal))


__all__ = ["router"]
