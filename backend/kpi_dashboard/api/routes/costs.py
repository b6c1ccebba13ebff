"""Admin-only job-cost reporting routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from kpi_dashboard.api.dependencies.auth import build_current_user, ensure_admin
from kpi_dashboard.db.session import Database
from kpi_dashboard.models import User
from kpi_dashboard.schemas import (
    CostSeriesRequest,
    CostSeriesResponse,
    EmployeeRateSchema,
    EmployeeRateUpdateRequest,
    JobAllocationSchema,
    MonthlyCostSchema,
)
from kpi_dashboard.services import reporting
from kpi_dashboard.services.cost_aggregation import MonthlyCostRow
from kpi_dashboard.services.repository import DataServiceError


def _to_month(row: MonthlyCostRow) -> MonthlyCostSchema:
    return MonthlyCostSchema(
        month=row.month,
        label=row.label,
        employee_cost=row.employee_cost,
        job_operational_cost=row.job_operational_cost,
        total_cost=row.total_cost,
        open_jobs_count=row.open_jobs_count,
        cost_per_job=row.cost_per_job,
    )


def get_costs_router(database: Database) -> APIRouter:
    router = APIRouter(prefix="/costs", tags=["costs"])
    current_user = build_current_user(database)

    @router.post("/series", response_model=CostSeriesResponse)
    async def cost_series(payload: CostSeriesRequest, user: User = Depends(current_user)) -> CostSeriesResponse:
        ensure_admin(user)
        try:
            series = await reporting.get_cost_series(
                database,
                window_months=payload.window_months,
                month=payload.month,
                adjusted_hours=payload.adjusted_hours,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

        latest = series.latest
        return CostSeriesResponse(
            monthly_rows=[_to_month(row) for row in series.months],
            job_allocations=[
                JobAllocationSchema(
                    job_id=row.job_id,
                    job_title=row.job_title,
                    client_id=row.client_id,
                    status=row.status,
                    start_date=row.start_date,
                    end_date=row.end_date,
                    month=row.month,
                    allocated_cost=row.allocated_cost,
                )
                for row in series.allocations
            ],
            latest=_to_month(latest) if latest is not None else None,
        )

    @router.get("/employees", response_model=list[EmployeeRateSchema])
    async def employees(user: User = Depends(current_user)) -> list[EmployeeRateSchema]:
        ensure_admin(user)
        try:
            rows = await reporting.list_employees_with_rates(database)
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return [
            EmployeeRateSchema(user_id=row.user_id, name=row.name, hourly_rate=row.hourly_rate, rate_id=row.rate_id)
            for row in rows
        ]

    @router.put("/employees/{user_id}/rate", response_model=EmployeeRateSchema)
    async def set_rate(
        user_id: str,
        payload: EmployeeRateUpdateRequest,
        user: User = Depends(current_user),
    ) -> EmployeeRateSchema:
        ensure_admin(user)
        try:
            stored = await reporting.update_employee_rate(database, user_id, payload.hourly_rate)
        except reporting.UnknownUserError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return EmployeeRateSchema(
            user_id=stored.user_id, name=stored.name, hourly_rate=stored.hourly_rate, rate_id=stored.rate_id
        )

    return router


__all__ = ["get_costs_router"]
