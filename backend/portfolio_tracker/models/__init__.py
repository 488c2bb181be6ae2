"""Database model exports."""

from .goal import GOAL_CATEGORIES, GOAL_PRIORITIES, RISK_TOLERANCES, Goal
from .portfolio import PortfolioPosition
from .quote import StockQuote

__all__ = [
    "StockQuote",
    "PortfolioPosition",
    "Goal",
    "RISK_TOLERANCES",
    "GOAL_CATEGORIES",
    "GOAL_PRIORITIES",
]
