"""Entrypoint for the KPI dashboard FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry import trace
from opentelemetry.baggage import get_baggage

from kpi_dashboard import __version__
from kpi_dashboard.api.routes import build_api_router
from kpi_dashboard.config import AppSettings, get_settings
from kpi_dashboard.core.logging import setup_logging
from kpi_dashboard.core.telemetry import setup_telemetry
from kpi_dashboard.db.init import init_database
from kpi_dashboard.db.session import Database, get_database
from kpi_dashboard.schemas import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI, database: Database):
    await init_database(database)
    yield
    await database.dispose()


def create_app(database: Database | None = None, settings: AppSettings | None = None) -> FastAPI:
    settings = settings or get_settings()
    database_instance = database or get_database()
    setup_logging()
    logger.info("Starting %s with settings %s", settings.app_name, settings.dict_for_logging())

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lambda app: _lifespan(app, database_instance),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["traceparent", "tracestate", "baggage", "x-request-id"],
    )
    setup_telemetry(app, settings, engine=database_instance.engine)

    # Copy end-user attributes from W3C Baggage onto the active server span
    @app.middleware("http")
    async def _attach_user_baggage(request: Request, call_next):
        span = trace.get_current_span()
        for key in ("enduser.id", "enduser.role"):
            value = get_baggage(key)
            if value:
                span.set_attribute(key, str(value))
        return await call_next(request)

    app.include_router(build_api_router(database_instance))

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service="kpi-dashboard",
            timestamp=datetime.now(ZoneInfo(settings.timezone)).isoformat(),
            timezone=settings.timezone,
        )

    return app


app = create_app()

__all__ = ["app", "create_app"]
