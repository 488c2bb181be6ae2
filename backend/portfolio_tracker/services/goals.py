"""Savings goals: CRUD plus progress metrics."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_tracker.models import Goal

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 30
# Columns an update may explicitly clear
NULLABLE_GOAL_FIELDS = frozenset({"description", "monthly_contribution"})


@dataclass
class GoalMetrics:
    progress: float
    days_remaining: int
    months_remaining: int
    required_monthly_contribution: float


@dataclass
class GoalStats:
    total_goals: int
    active_goals: int
    achieved_goals: int
    total_target_amount: float
    total_current_amount: float
    average_progress: float
    goals_by_category: dict[str, int]
    goals_by_priority: dict[str, int]
    goals_expiring_soon: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def progress_percent(current_amount: float, target_amount: float) -> float:
    if target_amount <= 0:
        return 100.0
    return min(current_amount / target_amount * 100, 100.0)


def months_between(start: date, end: date) -> int:
    """Calendar months from ``start`` to ``end``, never negative."""

    return max((end.year - start.year) * 12 + (end.month - start.month), 0)


def goal_metrics(goal: Goal, today: Optional[date] = None) -> GoalMetrics:
    today = today or _utcnow().date()
    current = float(goal.current_amount or 0)
    target = float(goal.target_amount)
    months = months_between(today, goal.target_date)
    remaining = max(target - current, 0.0)
    return GoalMetrics(
        progress=progress_percent(current, target),
        days_remaining=(goal.target_date - today).days,
        months_remaining=months,
        required_monthly_contribution=remaining / months if months > 0 else remaining,
    )


def mark_achievement(goal: Goal, now: Optional[datetime] = None) -> bool:
    """Flag ``goal`` achieved once its target is reached. Returns True on transition."""

    if goal.is_achieved or float(goal.current_amount or 0) < float(goal.target_amount):
        return False
    goal.is_achieved = True
    goal.achieved_date = now or _utcnow()
    return True


async def list_goals(
    session: AsyncSession,
    user_id: str,
    *,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Goal], int]:
    """Return one page of goals (newest first) and the total matching count."""

    filters = [Goal.user_id == user_id]
    if category is not None:
        filters.append(Goal.category == category)
    if priority is not None:
        filters.append(Goal.priority == priority)
    if is_active is not None:
        filters.append(Goal.is_active == is_active)

    total = await session.scalar(select(func.count()).select_from(Goal).where(*filters))
    result = await session.execute(
        select(Goal)
        .where(*filters)
        .order_by(Goal.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def get_goal(session: AsyncSession, user_id: str, goal_id: str) -> Goal | None:
    result = await session.execute(select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id))
    return result.scalar_one_or_none()


async def create_goal(session: AsyncSession, user_id: str, values: Mapping[str, Any]) -> Goal:
    goal = Goal(user_id=user_id, current_amount=0.0, is_active=True, is_achieved=False, **values)
    mark_achievement(goal)
    session.add(goal)
    await session.commit()
    await session.refresh(goal)
    logger.info("Created goal %s for user %s", goal.id, user_id)
    return goal


async def update_goal(session: AsyncSession, goal: Goal, changes: Mapping[str, Any]) -> Goal:
    for key, value in changes.items():
        if value is None and key not in NULLABLE_GOAL_FIELDS:
            continue
        setattr(goal, key, value)
    mark_achievement(goal)
    goal.updated_at = _utcnow()
    await session.commit()
    await session.refresh(goal)
    return goal


async def adjust_progress(session: AsyncSession, goal: Goal, amount: float, kind: str) -> Goal:
    """Add to or subtract from the saved amount; the balance never drops below zero."""

    current = float(goal.current_amount or 0)
    if kind == "add":
        new_amount = current + amount
    elif kind == "subtract":
        new_amount = max(0.0, current - amount)
    else:
        raise ValueError(f"Unsupported progress type: {kind}")
    return await update_goal(session, goal, {"current_amount": new_amount})


async def delete_goal(session: AsyncSession, goal: Goal) -> None:
    await session.delete(goal)
    await session.commit()


def summarize_goals(goals: Sequence[Goal], today: Optional[date] = None) -> GoalStats:
    today = today or _utcnow().date()
    metrics = [goal_metrics(goal, today) for goal in goals]
    return GoalStats(
        total_goals=len(goals),
        active_goals=sum(1 for g in goals if g.is_active),
        achieved_goals=sum(1 for g in goals if g.is_achieved),
        total_target_amount=sum(float(g.target_amount) for g in goals),
        total_current_amount=sum(float(g.current_amount or 0) for g in goals),
        average_progress=sum(m.progress for m in metrics) / len(metrics) if metrics else 0.0,
        goals_by_category=dict(Counter(g.category for g in goals)),
        goals_by_priority=dict(Counter(g.priority for g in goals)),
        goals_expiring_soon=sum(1 for m in metrics if 0 < m.days_remaining <= EXPIRING_SOON_DAYS),
    )


async def goal_stats(session: AsyncSession, user_id: str, today: Optional[date] = None) -> GoalStats:
    result = await session.execute(select(Goal).where(Goal.user_id == user_id))
    return summarize_goals(list(result.scalars().all()), today)


__all__ = [
    "GoalMetrics",
    "GoalStats",
    "progress_percent",
    "months_between",
    "goal_metrics",
    "mark_achievement",
    "list_goals",
    "get_goal",
    "create_goal",
    "update_goal",
    "adjust_progress",
    "delete_goal",
    "summarize_goals",
    "goal_stats",
]
