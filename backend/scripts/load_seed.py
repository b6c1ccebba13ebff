"""Load a JSON seed fixture (users, KPI catalog, jobs, costs, rates) into the database."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

from sqlalchemy import select

from kpi_dashboard.core.logging import setup_logging
from kpi_dashboard.db.init import init_database
from kpi_dashboard.db.session import Database
from kpi_dashboard.models import (
    JOB_STATUSES,
    AggregationKind,
    EmployeeHourlyRate,
    Job,
    JobCost,
    KPIDefinition,
    User,
    UserKPI,
    UserRole,
)

logger = logging.getLogger(__name__)


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


async def load_seed(database: Database, payload: dict[str, Any]) -> dict[str, int]:
    """Merge every section of ``payload`` into the database and return row counts per section.

    Rows are matched on their ids (or on user and KPI for assignments, and on
    user for hourly rates), so loading the same fixture twice is a no-op.
    """

    await init_database(database)
    counts: dict[str, int] = {}
    async with database.session() as session:
        for row in payload.get("users", []):
            await session.merge(
                User(
                    id=row["id"],
                    name=row["name"],
                    email=row.get("email"),
                    role=UserRole(row.get("role", UserRole.USER.value)),
                    job_cost_employee=bool(row.get("job_cost_employee", False)),
                )
            )
        counts["users"] = len(payload.get("users", []))

        for index, row in enumerate(payload.get("kpis", [])):
            await session.merge(
                KPIDefinition(
                    id=row["id"],
                    name=row["name"],
                    sector=row["sector"],
                    aggregation=AggregationKind(row.get("aggregation", AggregationKind.FLOW.value)),
                    sort_order=row.get("sort_order", index),
                )
            )
        counts["kpis"] = len(payload.get("kpis", []))
        await session.flush()

        for row in payload.get("user_kpis", []):
            assigned = await session.execute(
                select(UserKPI.id).where(UserKPI.user_id == row["user_id"], UserKPI.kpi_id == row["kpi_id"])
            )
            if assigned.scalar_one_or_none() is None:
                session.add(UserKPI(user_id=row["user_id"], kpi_id=row["kpi_id"]))
        counts["user_kpis"] = len(payload.get("user_kpis", []))

        for row in payload.get("jobs", []):
            status = row.get("status", "open")
            if status not in JOB_STATUSES:
                raise ValueError(f"Job {row['id']} has unknown status {status!r}")
            await session.merge(
                Job(
                    id=row["id"],
                    job_title=row["job_title"],
                    client_id=row.get("client_id"),
                    status=status,
                    job_date=_date(row.get("job_date")),
                    end_date=_date(row.get("end_date")),
                )
            )
        counts["jobs"] = len(payload.get("jobs", []))
        await session.flush()

        for row in payload.get("job_costs", []):
            await session.merge(
                JobCost(
                    id=row["id"],
                    job_id=row.get("job_id"),
                    description=row.get("description", ""),
                    amount=row["amount"],
                    cost_date=_date(row["cost_date"]),
                )
            )
        counts["job_costs"] = len(payload.get("job_costs", []))

        for row in payload.get("rates", []):
            existing = await session.execute(
                select(EmployeeHourlyRate).where(EmployeeHourlyRate.user_id == row["user_id"])
            )
            rate = existing.scalar_one_or_none()
            if rate is None:
                session.add(EmployeeHourlyRate(user_id=row["user_id"], hourly_rate=row["hourly_rate"]))
            else:
                rate.hourly_rate = row["hourly_rate"]
        counts["rates"] = len(payload.get("rates", []))

        await session.commit()
    return counts


async def _run(seed_path: Path, database_url: str | None) -> None:
    database = Database(url=database_url)
    try:
        payload = json.loads(seed_path.read_text())
        counts = await load_seed(database, payload)
    finally:
        await database.dispose()
    logger.info("Loaded seed %s: %s", seed_path, counts)


def main() -> None:
    parser = argparse.ArgumentParser(description="Load seed data into the KPI dashboard database")
    parser.add_argument("seed_file", nargs="?", default="kpi_dashboard_seed.json")
    parser.add_argument("--database-url", default=None)
    args = parser.parse_args()
    seed_path = Path(args.seed_file)
    if not seed_path.exists():
        raise SystemExit(f"Seed file not found: {seed_path}")
    setup_logging()
    asyncio.run(_run(seed_path, args.database_url))


if __name__ == "__main__":
    main()
