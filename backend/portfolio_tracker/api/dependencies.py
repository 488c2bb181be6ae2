"""Shared FastAPI dependencies resolved from application state."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_tracker.config import AppSettings
from portfolio_tracker.services.batch import BatchCoordinator
from portfolio_tracker.services.fetch_gate import FetchGate
from portfolio_tracker.services.quote_refresher import QuoteRefresher
from portfolio_tracker.services.quote_store import QuoteStore


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    async for session in request.app.state.database.get_session():  # pragma: no cover - FastAPI dependency wrapper
        yield session


def get_app_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_quote_store(request: Request) -> QuoteStore:
    return request.app.state.refresher.store


def get_refresher(request: Request) -> QuoteRefresher:
    return request.app.state.refresher


def get_batch_coordinator(request: Request) -> BatchCoordinator:
    return request.app.state.batch


def get_quote_client(request: Request) -> Any | None:
    return request.app.state.quote_client


def get_fetch_gate(request: Request) -> FetchGate:
    return request.app.state.gate


@dataclass
class RequestContext:
    user_id: str


def get_request_context(x_user_id: str | None = Header(default=None)) -> RequestContext:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user context")
    return RequestContext(user_id=x_user_id)


__all__ = [
    "get_db_session",
    "get_app_settings",
    "get_quote_store",
    "get_refresher",
    "get_batch_coordinator",
    "get_quote_client",
    "get_fetch_gate",
    "RequestContext",
    "get_request_context",
]
