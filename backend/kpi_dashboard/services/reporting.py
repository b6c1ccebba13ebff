"""Reporting operations consumed by the API layer.

Each function opens its own sessions on the given ``Database``, issues the
reads it needs, and hands plain rows to the pure aggregation engines.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Mapping, TypeVar
from zoneinfo import ZoneInfo

from kpi_dashboard.config import AppSettings, get_settings
from kpi_dashboard.db.session import Database
from kpi_dashboard.models import KPIDefinition, User
from kpi_dashboard.services import repository
from kpi_dashboard.services.cost_aggregation import (
    CostBreakdown,
    EmployeeRate,
    JobAllocationRow,
    MonthlyCostRow,
    compute_costs,
    parse_month,
    rolling_window,
)
from kpi_dashboard.services.entry_editor import EntryEditor, FormValue, LoadedEntry, SaveResult
from kpi_dashboard.services.kpi_aggregation import (
    ChartPoint,
    GroupBy,
    MetricSpec,
    MetricSummary,
    PivotedEntry,
    RateSummary,
    aggregate,
    build_frame,
    pivot_entries,
)
from kpi_dashboard.services.repository import data_service_call

logger = logging.getLogger(__name__)

ALL_USERS = "all"

T = TypeVar("T")


class UnknownUserError(LookupError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


@dataclass
class KpiSeries:
    user_id: str
    group_by: GroupBy
    start: date
    end: date
    previous_start: date
    previous_end: date
    catalog: list[MetricSpec]
    cards: list[MetricSummary] = field(default_factory=list)
    rates: list[RateSummary] = field(default_factory=list)
    chart: list[ChartPoint] = field(default_factory=list)
    sectors: dict[str, list[ChartPoint]] = field(default_factory=dict)
    entries: list[PivotedEntry] = field(default_factory=list)
    recent_entries: list[PivotedEntry] = field(default_factory=list)


@dataclass
class CostSeries:
    months: list[MonthlyCostRow]
    allocations: list[JobAllocationRow]

    @property
    def latest(self) -> MonthlyCostRow | None:
        return self.months[-1] if self.months else None


def today_in(settings: AppSettings) -> date:
    return datetime.now(ZoneInfo(settings.timezone)).date()


def period_bounds(today: date, period_days: int) -> tuple[date, date, date, date]:
    """Current period ``[today - period_days, today]`` and the equal-length period before it."""

    if period_days < 1:
        raise ValueError("period_days must be positive")
    start = today - timedelta(days=period_days)
    previous_end = start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=period_days)
    return start, today, previous_start, previous_end


async def _read(database: Database, operation: str, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
    async with database.session() as session:
        with data_service_call(operation):
            return await fn(session, *args, **kwargs)


async def list_kpi_catalog(database: Database, user_id: str | None = None) -> list[KPIDefinition]:
    return await _read(database, "list_kpis", repository.list_kpi_definitions, user_id)


async def list_users(database: Database) -> list[User]:
    return await _read(database, "list_users", repository.list_users)


async def get_user(database: Database, user_id: str) -> User | None:
    return await _read(database, "get_user", repository.get_user, user_id)


async def _recent_entries(
    database: Database,
    catalog: list[MetricSpec],
    limit: int,
    user_id: str | None,
    names: Mapping[str, str],
) -> list[PivotedEntry]:
    kpi_ids = [spec.kpi_id for spec in catalog if spec.kpi_id]
    if not kpi_ids:
        return []
    keys = await _read(
        database,
        "recent_entries",
        repository.fetch_recent_entry_dates,
        limit,
        user_id=user_id,
        kpi_ids=kpi_ids,
    )
    if not keys:
        return []
    oldest = min(day for day, _ in keys)
    newest = max(day for day, _ in keys)
    rows = await _read(database, "recent_entry_rows", repository.fetch_entry_rows, oldest, newest, user_id=user_id)
    wanted = set(keys)
    pivoted = pivot_entries(build_frame(rows, catalog), catalog, user_names=names)
    return [entry for entry in pivoted if (entry.date, entry.user_id) in wanted][:limit]


async def get_kpi_series(
    database: Database,
    period_days: int,
    user_id: str = ALL_USERS,
    group_by: GroupBy | str = GroupBy.DAY,
    *,
    today: date | None = None,
    settings: AppSettings | None = None,
) -> KpiSeries:
    """Cards, chart series and entries for the last ``period_days`` days."""

    settings = settings or get_settings()
    group_by = GroupBy(group_by)
    today = today or today_in(settings)
    start, end, previous_start, previous_end = period_bounds(today, period_days)
    scoped_user = None if user_id == ALL_USERS else user_id

    definitions, current_rows, previous_rows, names = await asyncio.gather(
        list_kpi_catalog(database, scoped_user),
        _read(database, "kpi_entries", repository.fetch_entry_rows, start, end, user_id=scoped_user),
        _read(
            database,
            "kpi_entries_previous",
            repository.fetch_entry_rows,
            previous_start,
            previous_end,
            user_id=scoped_user,
        ),
        _read(database, "user_names", repository.user_names),
    )
    catalog = repository.to_metric_specs(definitions)

    result = aggregate(
        current_rows,
        catalog,
        start=start,
        end=end,
        group_by=group_by,
        previous_rows=previous_rows,
        previous_start=previous_start,
        previous_end=previous_end,
        rate_metrics=settings.rate_metrics,
        user_names=names,
    )
    recent = await _recent_entries(database, catalog, settings.recent_entries_limit, scoped_user, names)

    logger.info(
        "KPI series for %s over %d days (%s): %d rows, %d pivoted entries",
        user_id,
        period_days,
        group_by.value,
        len(current_rows),
        len(result.entries),
    )
    return KpiSeries(
        user_id=user_id,
        group_by=group_by,
        start=start,
        end=end,
        previous_start=previous_start,
        previous_end=previous_end,
        catalog=catalog,
        cards=result.cards,
        rates=result.rates,
        chart=result.chart,
        sectors=result.sectors,
        entries=result.entries,
        recent_entries=recent,
    )


def resolve_months(
    *,
    window_months: int | None,
    month: str | date | None,
    today: date,
    settings: AppSettings,
) -> list[date]:
    if month is not None:
        return [parse_month(month)]
    window = window_months or settings.cost_window_months
    if window not in settings.allowed_cost_windows:
        raise ValueError(f"Unsupported cost window of {window} months")
    return rolling_window(today, window)


async def get_cost_series(
    database: Database,
    *,
    window_months: int | None = None,
    month: str | date | None = None,
    adjusted_hours: Mapping[str, Mapping[str, float]] | None = None,
    today: date | None = None,
    settings: AppSettings | None = None,
) -> CostSeries:
    """Monthly cost rows and per-job allocations for a rolling window or one month."""

    settings = settings or get_settings()
    today = today or today_in(settings)
    months = resolve_months(window_months=window_months, month=month, today=today, settings=settings)

    jobs, costs, employees = await asyncio.gather(
        _read(database, "list_jobs", repository.list_jobs),
        _read(database, "list_job_costs", repository.list_job_costs),
        _read(database, "list_employees", repository.list_employees_with_rates),
    )
    breakdown: CostBreakdown = compute_costs(
        months,
        jobs,
        costs,
        employees,
        adjusted_hours,
        default_hours=settings.default_monthly_hours,
    )
    logger.info(
        "Cost series %s..%s: %d jobs, %d costs, %d employees",
        months[0],
        months[-1],
        len(jobs),
        len(costs),
        len(employees),
    )
    return CostSeries(months=breakdown.months, allocations=breakdown.allocations)


async def list_employees_with_rates(database: Database) -> list[EmployeeRate]:
    return await _read(database, "list_employees", repository.list_employees_with_rates)


async def update_employee_rate(database: Database, user_id: str, rate: float) -> EmployeeRate:
    if rate < 0:
        raise ValueError("Hourly rate must not be negative")
    async with database.session() as session:
        with data_service_call("upsert_rate"):
            user = await repository.get_user(session, user_id)
            if user is None:
                raise UnknownUserError(user_id)
            stored = await repository.upsert_employee_rate(
                session, user_id, rate, dialect_name=database.dialect_name
            )
    logger.info("Hourly rate for %s set to %s", user_id, rate)
    return EmployeeRate(
        user_id=user_id,
        name=user.name,
        hourly_rate=float(stored.hourly_rate),
        rate_id=stored.id,
    )


async def load_entries(database: Database, user_id: str, day: date) -> dict[str, LoadedEntry]:
    return await EntryEditor(database).load_entries_for(user_id, day)


async def save_entry(
    database: Database,
    user_id: str,
    day: date,
    values: Mapping[str, FormValue],
) -> SaveResult:
    """Apply a day's KPI form for ``user_id`` against the user's KPI catalog."""

    definitions = await list_kpi_catalog(database, user_id)
    catalog = repository.to_metric_specs(definitions)
    return await EntryEditor(database).save_all(user_id, day, values, catalog)


async def delete_entry(database: Database, user_id: str, day: date) -> int:
    return await EntryEditor(database).delete_all(user_id, day)


__all__ = [
    "ALL_USERS",
    "UnknownUserError",
    "KpiSeries",
    "CostSeries",
    "today_in",
    "period_bounds",
    "list_kpi_catalog",
    "list_users",
    "get_user",
    "get_kpi_series",
    "resolve_months",
    "get_cost_series",
    "list_employees_with_rates",
    "update_employee_rate",
    "load_entries",
    "save_entry",
    "delete_entry",
]
