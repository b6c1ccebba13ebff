from __future__ import annotations

import pytest
from sqlalchemy import func, select

from kpi_dashboard.db.session import Database
from kpi_dashboard.models import EmployeeHourlyRate, JobCost, UserKPI
from scripts.load_seed import load_seed


def _payload(rate: float = 20.0) -> dict:
    return {
        "users": [{"id": "u1", "name": "Ana", "role": "admin", "job_cost_employee": True}],
        "kpis": [{"id": "k-calls", "name": "Calls Made", "sector": "Prospecting"}],
        "user_kpis": [{"user_id": "u1", "kpi_id": "k-calls"}],
        "jobs": [{"id": "j1", "job_title": "Picker", "job_date": "2025-03-03"}],
        "job_costs": [{"id": "c1", "job_id": "j1", "amount": 120, "cost_date": "2025-03-04"}],
        "rates": [{"user_id": "u1", "hourly_rate": rate}],
    }


async def _count(database: Database, model) -> int:
    async with database.session() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def test_loading_the_same_fixture_twice_is_idempotent(sqlite_url: str):
    database = Database(url=sqlite_url)
    try:
        first = await load_seed(database, _payload())
        second = await load_seed(database, _payload(rate=22.5))
        assert first == second

        assert await _count(database, UserKPI) == 1
        assert await _count(database, JobCost) == 1
        assert await _count(database, EmployeeHourlyRate) == 1
        async with database.session() as session:
            rate = (await session.execute(select(EmployeeHourlyRate))).scalar_one()
        assert float(rate.hourly_rate) == 22.5
    finally:
        await database.dispose()


async def test_unknown_job_status_is_rejected(sqlite_url: str):
    database = Database(url=sqlite_url)
    payload = {"jobs": [{"id": "j1", "job_title": "Picker", "status": "paused"}]}
    try:
        with pytest.raises(ValueError, match="paused"):
            await load_seed(database, payload)
    finally:
        await database.dispose()
