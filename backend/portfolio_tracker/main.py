"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portfolio_tracker import __version__
from portfolio_tracker.api.routes import api_router
from portfolio_tracker.config import AppSettings, get_settings
from portfolio_tracker.core.logging import setup_logging
from portfolio_tracker.core.telemetry import setup_telemetry
from portfolio_tracker.db.database import Database
from portfolio_tracker.providers.alpha_vantage import get_alpha_vantage_client
from portfolio_tracker.services.batch import BatchCoordinator
from portfolio_tracker.services.fetch_gate import FetchGate
from portfolio_tracker.services.quote_refresher import QuoteRefresher
from portfolio_tracker.services.quote_store import QuoteStore

logger = logging.getLogger(__name__)

_DEFAULT_CLIENT = object()


def create_app(
    settings: AppSettings | None = None,
    *,
    database: Database | None = None,
    quote_client: Any = _DEFAULT_CLIENT,
    gate: FetchGate | None = None,
) -> FastAPI:
    """Build the API with its quote cache wired onto ``app.state``.

    ``quote_client`` defaults to an Alpha Vantage client built from settings;
    pass ``None`` explicitly to run cache-only.
    """

    settings = settings or get_settings()
    setup_logging(settings.log_level)

    database = database or Database(settings.database_url)
    if quote_client is _DEFAULT_CLIENT:
        quote_client = get_alpha_vantage_client(settings)
    if quote_client is None:
        logger.warning("No Alpha Vantage API key configured; serving cached quotes only")
    gate = gate or FetchGate(settings.alphavantage_min_interval_seconds)
    refresher = QuoteRefresher(
        QuoteStore(database),
        quote_client,
        gate,
        freshness_window=timedelta(minutes=settings.quote_freshness_minutes),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await database.create_all()
        logger.info("Portfolio tracker started with settings: %s", settings.dict_for_logging())
        yield
        if quote_client is not None and hasattr(quote_client, "aclose"):
            await quote_client.aclose()
        await database.dispose()

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.quote_client = quote_client
    app.state.gate = gate
    app.state.refresher = refresher
    app.state.batch = BatchCoordinator(refresher, max_batch_size=settings.quote_batch_max_symbols)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["traceparent", "tracestate", "x-request-id"],
    )
    setup_telemetry(app, settings, engine=database.engine)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, Any]:
        """Return service readiness metadata."""

        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "quote_provider": "cache-only" if refresher.cache_only else "alphavantage",
            "fetch_gate": gate.metrics(),
        }

    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("portfolio_tracker.main:app", host=settings.app_host, port=settings.app_port)
