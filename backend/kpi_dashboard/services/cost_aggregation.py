"""Monthly operating cost and per-job allocation.

For each month in the reporting window the engine adds employee labour cost
(hours x hourly rate per employee) to the operational job costs dated in that
month, and divides the total by the number of jobs that *started* in that
month. Job counting is discrete: a job contributes to its start month only,
regardless of its end date. Every job starting in a month is then allocated
that month's unit cost.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Mapping, Sequence

from kpi_dashboard.config.settings import DEFAULT_MONTHLY_HOURS
from kpi_dashboard.services.kpi_aggregation import coerce_date
from kpi_dashboard.services.safe_math import safe_divide

logger = logging.getLogger(__name__)

_MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# {"2025-06-01": {"user-id": 100.0}}
AdjustedHoursMap = Dict[str, Dict[str, float]]


@dataclass
class EmployeeRate:
    user_id: str
    name: str = ""
    hourly_rate: float = 0.0
    rate_id: str | None = None


@dataclass
class JobRecord:
    id: str
    job_title: str
    start_date: date | str | None
    end_date: date | str | None = None
    client_id: str | None = None
    status: str = "open"


@dataclass
class JobCostRecord:
    id: str
    amount: float
    cost_date: date | str | None
    job_id: str | None = None
    description: str = ""


@dataclass
class MonthlyCostRow:
    month: date
    label: str
    employee_cost: float
    job_operational_cost: float
    total_cost: float
    open_jobs_count: int
    cost_per_job: float

    @property
    def month_key(self) -> str:
        return month_key(self.month)


@dataclass
class JobAllocationRow:
    job_id: str
    job_title: str
    client_id: str | None
    status: str
    start_date: date
    end_date: date | None
    month: date
    allocated_cost: float


@dataclass
class CostBreakdown:
    months: list[MonthlyCostRow] = field(default_factory=list)
    allocations: list[JobAllocationRow] = field(default_factory=list)

    @property
    def latest(self) -> MonthlyCostRow | None:
        return self.months[-1] if self.months else None


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_key(day: date) -> str:
    """Normalise any day to its first-of-month ISO string."""

    return month_start(day).isoformat()


def month_label(day: date) -> str:
    """English ``Mon YYYY`` label, independent of the process locale."""

    return f"{_MONTH_ABBREVIATIONS[day.month - 1]} {day.year}"


def parse_month(value: str | date) -> date:
    """Accept ``YYYY-MM`` or ``YYYY-MM-DD`` (or a date) and return the month start."""

    if isinstance(value, date):
        return month_start(value)
    text = value.strip()
    if len(text) == 7:
        text = f"{text}-01"
    return month_start(date.fromisoformat(text))


def shift_months(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def rolling_window(today: date, months: int) -> list[date]:
    """``months`` month starts ending with the month containing ``today``."""

    if months < 1:
        raise ValueError("Window must cover at least one month")
    end = month_start(today)
    return [shift_months(end, offset) for offset in range(-(months - 1), 1)]


def normalize_adjusted_hours(adjusted: Mapping[str, Mapping[str, float]] | None) -> AdjustedHoursMap:
    """Re-key an adjustment map by first-of-month strings, dropping malformed months."""

    normalized: AdjustedHoursMap = {}
    for raw_month, per_user in (adjusted or {}).items():
        try:
            key = month_key(parse_month(raw_month))
        except ValueError:
            logger.warning("Ignoring hours adjustment for unparseable month %r", raw_month)
            continue
        bucket = normalized.setdefault(key, {})
        for user_id, hours in per_user.items():
            bucket[str(user_id)] = float(hours)
    return normalized


def hours_for(
    adjusted: AdjustedHoursMap,
    month: date,
    user_id: str,
    default_hours: float = DEFAULT_MONTHLY_HOURS,
) -> float:
    return adjusted.get(month_key(month), {}).get(user_id, default_hours)


def employee_cost(
    employees: Iterable[EmployeeRate],
    month: date,
    adjusted: AdjustedHoursMap,
    default_hours: float = DEFAULT_MONTHLY_HOURS,
) -> float:
    total = 0.0
    for employee in employees:
        hours = hours_for(adjusted, month, employee.user_id, default_hours)
        total += hours * (employee.hourly_rate or 0.0)
    return total


def _same_month(value: date | str | None, month: date) -> bool:
    day = coerce_date(value)
    return day is not None and day.year == month.year and day.month == month.month


def job_operational_cost(costs: Iterable[JobCostRecord], month: date) -> float:
    return sum(float(cost.amount) for cost in costs if _same_month(cost.cost_date, month))


def open_jobs_count(jobs: Iterable[JobRecord], month: date) -> int:
    return sum(1 for job in jobs if _same_month(job.start_date, month))


def monthly_costs(
    months: Sequence[date],
    jobs: Sequence[JobRecord],
    costs: Sequence[JobCostRecord],
    employees: Sequence[EmployeeRate],
    adjusted: Mapping[str, Mapping[str, float]] | None = None,
    *,
    default_hours: float = DEFAULT_MONTHLY_HOURS,
) -> list[MonthlyCostRow]:
    adjusted_map = normalize_adjusted_hours(adjusted)
    rows: list[MonthlyCostRow] = []
    for month in sorted(month_start(m) for m in months):
        labour = employee_cost(employees, month, adjusted_map, default_hours)
        operational = job_operational_cost(costs, month)
        total = labour + operational
        count = open_jobs_count(jobs, month)
        rows.append(
            MonthlyCostRow(
                month=month,
                label=month_label(month),
                employee_cost=labour,
                job_operational_cost=operational,
                total_cost=total,
                open_jobs_count=count,
                cost_per_job=safe_divide(total, count),
            )
        )
    return rows


def allocate_jobs(jobs: Iterable[JobRecord], months: Sequence[MonthlyCostRow]) -> list[JobAllocationRow]:
    """Give each job its start month's unit cost; jobs outside the window are dropped."""

    by_month = {row.month: row for row in months}
    allocations: list[JobAllocationRow] = []
    for job in jobs:
        start = coerce_date(job.start_date)
        if start is None:
            if job.start_date is not None:
                logger.warning("Job %s has unparseable start date %r", job.id, job.start_date)
            continue
        stat = by_month.get(month_start(start))
        if stat is None:
            continue
        allocations.append(
            JobAllocationRow(
                job_id=job.id,
                job_title=job.job_title,
                client_id=job.client_id,
                status=job.status,
                start_date=start,
                end_date=coerce_date(job.end_date),
                month=stat.month,
                allocated_cost=stat.cost_per_job,
            )
        )
    allocations.sort(key=lambda row: row.start_date, reverse=True)
    return allocations


def compute_costs(
    months: Sequence[date],
    jobs: Sequence[JobRecord],
    costs: Sequence[JobCostRecord],
    employees: Sequence[EmployeeRate],
    adjusted: Mapping[str, Mapping[str, float]] | None = None,
    *,
    default_hours: float = DEFAULT_MONTHLY_HOURS,
) -> CostBreakdown:
    rows = monthly_costs(months, jobs, costs, employees, adjusted, default_hours=default_hours)
    return CostBreakdown(months=rows, allocations=allocate_jobs(jobs, rows))


__all__ = [
    "AdjustedHoursMap",
    "EmployeeRate",
    "JobRecord",
    "JobCostRecord",
    "MonthlyCostRow",
    "JobAllocationRow",
    "CostBreakdown",
    "month_start",
    "month_key",
    "month_label",
    "parse_month",
    "shift_months",
    "rolling_window",
    "normalize_adjusted_hours",
    "hours_for",
    "employee_cost",
    "job_operational_cost",
    "open_jobs_count",
    "monthly_costs",
    "allocate_jobs",
    "compute_costs",
]
