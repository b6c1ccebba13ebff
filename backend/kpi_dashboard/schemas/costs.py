"""Pydantic schemas for monthly cost reporting and employee rates."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field, field_validator


class CostSeriesRequest(BaseModel):
    window_months: int | None = Field(default=None, description="Rolling window ending this month")
    month: str | None = Field(
        default=None,
        pattern=r"^\d{4}-\d{2}$",
        description="Single month to report instead of a rolling window",
        examples=["2025-06"],
    )
    adjusted_hours: dict[str, dict[str, float]] = Field(
        default_factory=dict,
        description="Hours overrides keyed by month (YYYY-MM-01) then user id",
        examples=[{"2025-06-01": {"user-a": 100}}],
    )

    @field_validator("adjusted_hours")
    @classmethod
    def _non_negative_hours(cls, value: dict[str, dict[str, float]]) -> dict[str, dict[str, float]]:
        for per_user in value.values():
            for hours in per_user.values():
                if hours < 0:
                    raise ValueError("Adjusted hours must not be negative")
        return value


class MonthlyCostSchema(BaseModel):
    month: date
    label: str
    employee_cost: float
    job_operational_cost: float
    total_cost: float
    open_jobs_count: int
    cost_per_job: float


class JobAllocationSchema(BaseModel):
    job_id: str
    job_title: str
    client_id: str | None = None
    status: str
    start_date: date
    end_date: date | None = None
    month: date
    allocated_cost: float


class CostSeriesResponse(BaseModel):
    monthly_rows: list[MonthlyCostSchema]
    job_allocations: list[JobAllocationSchema]
    latest: MonthlyCostSchema | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "monthly_rows": [
                    {
                        "month": "2025-03-01",
                        "label": "Mar 2025",
                        "employee_cost": 7794.0,
                        "job_operational_cost": 1206.0,
                        "total_cost": 9000.0,
                        "open_jobs_count": 3,
                        "cost_per_job": 3000.0,
                    }
                ],
                "job_allocations": [],
                "latest": None,
            }
        }


class EmployeeRateSchema(BaseModel):
    user_id: str
    name: str
    hourly_rate: float
    rate_id: str | None = None


class EmployeeRateUpdateRequest(BaseModel):
    hourly_rate: float = Field(..., ge=0, examples=[25.0])


__all__ = [
    "CostSeriesRequest",
    "MonthlyCostSchema",
    "JobAllocationSchema",
    "CostSeriesResponse",
    "EmployeeRateSchema",
    "EmployeeRateUpdateRequest",
]
