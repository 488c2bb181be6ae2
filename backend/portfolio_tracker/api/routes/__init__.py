"""Route registration helpers."""

from __future__ import annotations

from fastapi import APIRouter

from .goals import router as goals_router
from .portfolio import router as portfolio_router
from .stocks import router as stocks_router

api_router = APIRouter()
api_router.include_router(stocks_router, prefix="/stocks", tags=["stocks"])
api_router.include_router(portfolio_router, prefix="/portfolio", tags=["portfolio"])
api_router.include_router(goals_router, prefix="/goals", tags=["goals"])

__all__ = ["api_router"]
