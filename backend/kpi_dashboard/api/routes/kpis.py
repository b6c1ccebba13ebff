"""KPI catalog and KPI series routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from kpi_dashboard.api.dependencies.auth import build_current_user, ensure_can_access
from kpi_dashboard.config import get_settings
from kpi_dashboard.db.session import Database
from kpi_dashboard.models import User
from kpi_dashboard.schemas import (
    ChartPointSchema,
    KPIDefinitionSchema,
    KpiSeriesResponse,
    MetricCardSchema,
    PivotedEntrySchema,
    RateCardSchema,
)
from kpi_dashboard.services import reporting
from kpi_dashboard.services.kpi_aggregation import ChartPoint, GroupBy, PivotedEntry
from kpi_dashboard.services.repository import DataServiceError


def _to_points(points: list[ChartPoint]) -> list[ChartPointSchema]:
    return [ChartPointSchema(period=point.period, values=point.values) for point in points]


def _to_entries(entries: list[PivotedEntry]) -> list[PivotedEntrySchema]:
    return [
        PivotedEntrySchema(date=entry.date, user_id=entry.user_id, user_name=entry.user_name, values=entry.values)
        for entry in entries
    ]


def _to_series_response(series: reporting.KpiSeries) -> KpiSeriesResponse:
    return KpiSeriesResponse(
        user_id=series.user_id,
        group_by=series.group_by,
        start=series.start,
        end=series.end,
        previous_start=series.previous_start,
        previous_end=series.previous_end,
        cards=[
            MetricCardSchema(
                name=card.name,
                sector=card.sector,
                aggregation=card.aggregation,
                value=card.value,
                previous=card.previous,
                trend=card.trend,
            )
            for card in series.cards
        ],
        rates=[
            RateCardSchema(name=rate.name, numerator=rate.numerator, denominator=rate.denominator, value=rate.value)
            for rate in series.rates
        ],
        chart_series=_to_points(series.chart),
        sector_series={sector: _to_points(points) for sector, points in series.sectors.items()},
        entries=_to_entries(series.entries),
        recent_entries=_to_entries(series.recent_entries),
    )


def get_kpi_router(database: Database) -> APIRouter:
    router = APIRouter(prefix="/kpis", tags=["kpis"])
    current_user = build_current_user(database)

    @router.get("/catalog", response_model=list[KPIDefinitionSchema])
    async def kpi_catalog(
        user_id: str | None = Query(default=None),
        user: User = Depends(current_user),
    ) -> list[KPIDefinitionSchema]:
        target = user_id or user.id
        ensure_can_access(user, target)
        try:
            definitions = await reporting.list_kpi_catalog(database, target)
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return [KPIDefinitionSchema.model_validate(definition) for definition in definitions]

    @router.get("/series", response_model=KpiSeriesResponse)
    async def kpi_series(
        period_days: int = Query(default=30, ge=1),
        user_id: str | None = Query(default=None, description="User id, or 'all' for every user (admin only)"),
        group_by: GroupBy = Query(default=GroupBy.DAY),
        user: User = Depends(current_user),
    ) -> KpiSeriesResponse:
        settings = get_settings()
        if period_days not in settings.kpi_period_options:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"period_days must be one of {settings.kpi_period_options}",
            )
        target = user_id or (reporting.ALL_USERS if user.is_admin else user.id)
        ensure_can_access(user, target)
        try:
            series = await reporting.get_kpi_series(database, period_days, target, group_by, settings=settings)
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return _to_series_response(series)

    return router


__all__ = ["get_kpi_router"]
