"""Savings goal metrics and persistence."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from fakes import sqlite_database
from portfolio_tracker.models import Goal
from portfolio_tracker.services import goals as goal_service

TODAY = date(2024, 1, 15)


def _goal(**overrides) -> Goal:
    values = {
        "id": "goal-1",
        "user_id": "user-1",
        "name": "House deposit",
        "target_amount": 12000.0,
        "current_amount": 3000.0,
        "target_date": date(2024, 10, 15),
        "category": "house",
        "priority": "high",
        "is_active": True,
        "is_achieved": False,
    }
    values.update(overrides)
    return Goal(**values)


def test_metrics_for_goal_in_progress():
    metrics = goal_service.goal_metrics(_goal(), TODAY)

    assert metrics.progress == pytest.approx(25.0)
    assert metrics.days_remaining == (date(2024, 10, 15) - TODAY).days
    assert metrics.months_remaining == 9
    assert metrics.required_monthly_contribution == pytest.approx(1000.0)


def test_progress_is_capped_and_months_never_negative():
    metrics = goal_service.goal_metrics(
        _goal(current_amount=15000.0, target_date=date(2023, 6, 1)),
        TODAY,
    )

    assert metrics.progress == pytest.approx(100.0)
    assert metrics.months_remaining == 0
    assert metrics.days_remaining < 0
    assert metrics.required_monthly_contribution == pytest.approx(0.0)


def test_past_due_goal_requires_the_full_remainder():
    metrics = goal_service.goal_metrics(_goal(target_date=date(2023, 12, 1)), TODAY)

    assert metrics.required_monthly_contribution == pytest.approx(9000.0)


def test_reaching_target_marks_goal_achieved():
    goal = _goal(current_amount=12000.0)

    assert goal_service.mark_achievement(goal)
    assert goal.is_achieved
    assert goal.achieved_date is not None
    assert not goal_service.mark_achievement(goal)


def test_summarize_goals():
    goals = [
        _goal(),
        _goal(id="goal-2", category="retirement", priority="low", current_amount=12000.0, is_achieved=True),
        _goal(id="goal-3", target_date=date(2024, 2, 1), is_active=False),
    ]

    stats = goal_service.summarize_goals(goals, TODAY)

    assert stats.total_goals == 3
    assert stats.active_goals == 2
    assert stats.achieved_goals == 1
    assert stats.total_target_amount == pytest.approx(36000.0)
    assert stats.average_progress == pytest.approx(50.0)
    assert stats.goals_by_category == {"house": 2, "retirement": 1}
    assert stats.goals_by_priority == {"high": 2, "low": 1}
    assert stats.goals_expiring_soon == 1


@pytest.mark.asyncio
async def test_goal_lifecycle(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    try:
        async with database.session() as session:
            goal = await goal_service.create_goal(
                session,
                "user-1",
                {"name": "Emergency fund", "target_amount": 1000.0, "target_date": date(2030, 1, 1), "category": "emergency"},
            )
            assert goal.current_amount == pytest.approx(0.0)
            assert not goal.is_achieved

            goal = await goal_service.adjust_progress(session, goal, 400.0, "add")
            assert goal.current_amount == pytest.approx(400.0)

            goal = await goal_service.adjust_progress(session, goal, 1000.0, "subtract")
            assert goal.current_amount == pytest.approx(0.0)

            goal = await goal_service.update_goal(session, goal, {"current_amount": 1000.0, "name": None})
            assert goal.is_achieved
            assert goal.name == "Emergency fund"

            goals, total = await goal_service.list_goals(session, "user-1", category="emergency")
            assert total == 1
            assert [g.id for g in goals] == [goal.id]
            assert await goal_service.get_goal(session, "user-2", goal.id) is None

            await goal_service.delete_goal(session, goal)
            assert await goal_service.get_goal(session, "user-1", goal.id) is None
    finally:
        await database.dispose()


@pytest.mark.asyncio
async def test_adjust_progress_rejects_unknown_type(tmp_path: Path):
    database = sqlite_database(tmp_path)
    await database.create_all()
    try:
        async with database.session() as session:
            goal = await goal_service.create_goal(
                session, "user-1", {"name": "Trip", "target_amount": 500.0, "target_date": date(2030, 6, 1)}
            )
            with pytest.raises(ValueError):
                await goal_service.adjust_progress(session, goal, 10.0, "multiply")
    finally:
        await database.dispose()
