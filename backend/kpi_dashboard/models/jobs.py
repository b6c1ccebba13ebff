"""Job, job cost and employee rate models."""

from __future__ import annotations

from datetime import date
from uuid import uuid4

from sqlalchemy import Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from kpi_dashboard.db.base import Base

JOB_STATUSES = ("open", "closed")


def _uuid_pk() -> str:
    return str(uuid4())


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_pk)
    job_title: Mapped[str] = mapped_column(String(255))
    client_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="open")
    job_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class JobCost(Base):
    __tablename__ = "job_costs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_pk)
    job_id: Mapped[str | None] = mapped_column(
        ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True
    )
    description: Mapped[str] = mapped_column(String(255), default="")
    amount: Mapped[float] = mapped_column(Numeric(14, 2))
    cost_date: Mapped[date] = mapped_column(Date, index=True)


class EmployeeHourlyRate(Base):
    __tablename__ = "employee_hourly_rates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_pk)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True)
    hourly_rate: Mapped[float] = mapped_column(Numeric(10, 2), default=0)


__all__ = ["Job", "JobCost", "EmployeeHourlyRate", "JOB_STATUSES"]
