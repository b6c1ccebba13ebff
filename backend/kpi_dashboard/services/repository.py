"""Filtered queries against the KPI and job-cost tables."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterator, Sequence

from sqlalchemy import Select, delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kpi_dashboard.models import (
    EmployeeHourlyRate,
    Job,
    JobCost,
    KPIDefinition,
    KPIEntry,
    User,
    UserKPI,
)
from kpi_dashboard.services.cost_aggregation import EmployeeRate, JobCostRecord, JobRecord
from kpi_dashboard.services.kpi_aggregation import MetricSpec, RawEntry

logger = logging.getLogger(__name__)


class DataServiceError(RuntimeError):
    """A query against the data service failed."""

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        super().__init__(f"{operation} failed" + (f": {detail}" if detail else ""))


@contextmanager
def data_service_call(operation: str) -> Iterator[None]:
    """Log and re-raise driver errors as ``DataServiceError``."""

    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Data service call %s failed", operation)
        raise DataServiceError(operation, str(exc.__class__.__name__)) from exc


# Users


async def list_users(session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).order_by(User.name))
    return list(result.scalars().all())


async def get_user(session: AsyncSession, user_id: str) -> User | None:
    return await session.get(User, user_id)


async def user_names(session: AsyncSession) -> dict[str, str]:
    result = await session.execute(select(User.id, User.name))
    return {row.id: row.name for row in result}


# KPI catalog


async def list_kpi_definitions(session: AsyncSession, user_id: str | None = None) -> list[KPIDefinition]:
    """Return the KPI catalog, restricted to the user's assignments when they have any."""

    stmt: Select = select(KPIDefinition).order_by(KPIDefinition.sort_order, KPIDefinition.name)
    if user_id:
        assigned = (
            await session.execute(select(UserKPI.kpi_id).where(UserKPI.user_id == user_id))
        ).scalars().all()
        if assigned:
            stmt = stmt.where(KPIDefinition.id.in_(assigned))
    result = await session.execute(stmt)
    return list(result.scalars().all())


def to_metric_specs(definitions: Sequence[KPIDefinition]) -> list[MetricSpec]:
    return [
        MetricSpec(name=item.name, sector=item.sector, aggregation=item.aggregation, kpi_id=item.id)
        for item in definitions
    ]


# KPI entries


async def fetch_entry_rows(
    session: AsyncSession,
    start: date,
    end: date,
    *,
    user_id: str | None = None,
) -> list[RawEntry]:
    """Entries between ``start`` and ``end`` inclusive, joined to their metric name."""

    stmt: Select = (
        select(KPIEntry.date, KPIEntry.user_id, KPIDefinition.name, KPIEntry.value)
        .join(KPIDefinition, KPIDefinition.id == KPIEntry.kpi_id)
        .where(KPIEntry.date >= start, KPIEntry.date <= end)
        .order_by(KPIEntry.date.desc())
    )
    if user_id:
        stmt = stmt.where(KPIEntry.user_id == user_id)
    result = await session.execute(stmt)
    return [
        RawEntry(date=row[0], user_id=row[1], metric=row[2], value=row[3])
        for row in result.all()
    ]


async def fetch_recent_entry_dates(
    session: AsyncSession,
    limit: int,
    *,
    user_id: str | None = None,
    kpi_ids: Sequence[str] | None = None,
) -> list[tuple[date, str]]:
    """Most recent distinct (date, user) pairs with at least one entry for ``kpi_ids``."""

    stmt: Select = (
        select(KPIEntry.date, KPIEntry.user_id)
        .join(KPIDefinition, KPIDefinition.id == KPIEntry.kpi_id)
        .distinct()
        .order_by(KPIEntry.date.desc(), KPIEntry.user_id)
        .limit(limit)
    )
    if user_id:
        stmt = stmt.where(KPIEntry.user_id == user_id)
    if kpi_ids is not None:
        stmt = stmt.where(KPIEntry.kpi_id.in_(list(kpi_ids)))
    result = await session.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


async def list_entries_for(session: AsyncSession, user_id: str, day: date) -> list[KPIEntry]:
    result = await session.execute(
        select(KPIEntry).where(KPIEntry.user_id == user_id, KPIEntry.date == day)
    )
    return list(result.scalars().all())


async def insert_entry(
    session: AsyncSession,
    *,
    user_id: str,
    kpi_id: str,
    day: date,
    sector: str,
    value: float,
) -> KPIEntry:
    entry = KPIEntry(user_id=user_id, kpi_id=kpi_id, date=day, sector=sector, value=value)
    session.add(entry)
    await session.commit()
    return entry


async def update_entry(session: AsyncSession, entry_id: str, *, value: float, sector: str) -> None:
    await session.execute(
        update(KPIEntry).where(KPIEntry.id == entry_id).values(value=value, sector=sector)
    )
    await session.commit()


async def delete_entry(session: AsyncSession, entry_id: str) -> None:
    await session.execute(delete(KPIEntry).where(KPIEntry.id == entry_id))
    await session.commit()


async def delete_entries_for(session: AsyncSession, user_id: str, day: date) -> int:
    result = await session.execute(
        delete(KPIEntry).where(KPIEntry.user_id == user_id, KPIEntry.date == day)
    )
    await session.commit()
    return result.rowcount or 0


# Jobs and costs


async def list_jobs(session: AsyncSession) -> list[JobRecord]:
    result = await session.execute(select(Job).order_by(Job.job_date.desc()))
    return [
        JobRecord(
            id=job.id,
            job_title=job.job_title,
            start_date=job.job_date,
            end_date=job.end_date,
            client_id=job.client_id,
            status=job.status,
        )
        for job in result.scalars().all()
    ]


async def list_job_costs(session: AsyncSession) -> list[JobCostRecord]:
    result = await session.execute(select(JobCost).order_by(JobCost.cost_date.desc()))
    return [
        JobCostRecord(
            id=cost.id,
            amount=float(cost.amount or 0),
            cost_date=cost.cost_date,
            job_id=cost.job_id,
            description=cost.description,
        )
        for cost in result.scalars().all()
    ]


async def list_employees_with_rates(session: AsyncSession) -> list[EmployeeRate]:
    """Users flagged as job-cost employees, with rate 0 when no rate row exists."""

    stmt: Select = (
        select(User, EmployeeHourlyRate)
        .outerjoin(EmployeeHourlyRate, EmployeeHourlyRate.user_id == User.id)
        .where(User.job_cost_employee.is_(True))
        .order_by(User.name)
    )
    result = await session.execute(stmt)
    return [
        EmployeeRate(
            user_id=user.id,
            name=user.name,
            hourly_rate=float(rate.hourly_rate) if rate is not None and rate.hourly_rate is not None else 0.0,
            rate_id=rate.id if rate is not None else None,
        )
        for user, rate in result.all()
    ]


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise DataServiceError("upsert", f"unsupported dialect {dialect_name}")


async def upsert_employee_rate(
    session: AsyncSession,
    user_id: str,
    hourly_rate: float,
    *,
    dialect_name: str,
) -> EmployeeHourlyRate:
    insert = _insert_for(dialect_name)
    stmt = (
        insert(EmployeeHourlyRate)
        .values(user_id=user_id, hourly_rate=hourly_rate)
        .on_conflict_do_update(
            index_elements=[EmployeeHourlyRate.user_id],
            set_={"hourly_rate": hourly_rate},
        )
    )
    await session.execute(stmt)
    await session.commit()
    result = await session.execute(
        select(EmployeeHourlyRate)
        .where(EmployeeHourlyRate.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


__all__ = [
    "DataServiceError",
    "data_service_call",
    "list_users",
    "get_user",
    "user_names",
    "list_kpi_definitions",
    "to_metric_specs",
    "fetch_entry_rows",
    "fetch_recent_entry_dates",
    "list_entries_for",
    "insert_entry",
    "update_entry",
    "delete_entry",
    "delete_entries_for",
    "list_jobs",
    "list_job_costs",
    "list_employees_with_rates",
    "upsert_employee_rate",
]
