from __future__ import annotations

from datetime import date, timedelta

from kpi_dashboard.db.session import Database
from kpi_dashboard.services import reporting, repository
from scripts.load_seed import load_seed

TODAY = date(2025, 6, 30)


def _payload() -> dict:
    return {
        "users": [{"id": "u1", "name": "Ana"}],
        "kpis": [
            {"id": "k-calls", "name": "Calls Made", "sector": "Prospecting", "sort_order": 1},
            {"id": "k-closes", "name": "Closes", "sector": "Prospecting", "sort_order": 2},
        ],
        "user_kpis": [{"user_id": "u1", "kpi_id": "k-calls"}],
    }


async def test_recent_entries_only_consider_kpis_in_the_callers_catalog(sqlite_url: str):
    database = Database(url=sqlite_url)
    try:
        await load_seed(database, _payload())
        async with database.session() as session:
            # Closes were recorded before the user was limited to calls.
            for offset in range(1, 6):
                await repository.insert_entry(
                    session,
                    user_id="u1",
                    kpi_id="k-closes",
                    day=TODAY - timedelta(days=offset),
                    sector="Prospecting",
                    value=1,
                )
            await repository.insert_entry(
                session,
                user_id="u1",
                kpi_id="k-calls",
                day=TODAY - timedelta(days=10),
                sector="Prospecting",
                value=7,
            )

        series = await reporting.get_kpi_series(database, 30, "u1", today=TODAY)

        assert [spec.name for spec in series.catalog] == ["Calls Made"]
        assert [(entry.date, entry.values) for entry in series.recent_entries] == [
            (TODAY - timedelta(days=10), {"Calls Made": 7.0}),
        ]
        assert [(entry.date, entry.values) for entry in series.entries] == [
            (TODAY - timedelta(days=10), {"Calls Made": 7.0}),
        ]
    finally:
        await database.dispose()
