"""Pydantic schemas for the user directory."""

from __future__ import annotations

from pydantic import BaseModel

from kpi_dashboard.models.user import UserRole


class UserSchema(BaseModel):
    id: str
    name: str
    email: str | None = None
    role: UserRole
    job_cost_employee: bool = False

    class Config:
        from_attributes = True


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: str
    timezone: str


__all__ = ["UserSchema", "HealthResponse"]
