"""API router assembly."""

from fastapi import APIRouter

from kpi_dashboard.db.session import Database

from .costs import get_costs_router
from .entries import get_entries_router
from .kpis import get_kpi_router
from .users import get_users_router


def build_api_router(database: Database) -> APIRouter:
    api_router = APIRouter()
    api_router.include_router(get_kpi_router(database))
    api_router.include_router(get_entries_router(database))
    api_router.include_router(get_costs_router(database))
    api_router.include_router(get_users_router(database))
    return api_router


__all__ = ["build_api_router"]
