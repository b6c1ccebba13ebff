from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from kpi_dashboard.db.session import Database
from kpi_dashboard.models import AggregationKind
from kpi_dashboard.services import reporting, repository
from kpi_dashboard.services.entry_editor import (
    EntrySaveError,
    LoadedEntry,
    WriteAction,
    parse_value,
    plan_writes,
)
from kpi_dashboard.services.kpi_aggregation import MetricSpec
from scripts.load_seed import load_seed

DAY = date(2025, 6, 2)

CATALOG = [
    MetricSpec("Calls Made", "Prospecting", AggregationKind.FLOW, kpi_id="k-calls"),
    MetricSpec("Closes", "Prospecting", AggregationKind.FLOW, kpi_id="k-closes"),
    MetricSpec("Open Requisitions", "RAR", AggregationKind.STOCK, kpi_id="k-reqs"),
]


def _payload() -> dict:
    return {
        "users": [{"id": "u1", "name": "Ana", "role": "user"}],
        "kpis": [
            {"id": "k-calls", "name": "Calls Made", "sector": "Prospecting", "sort_order": 1},
            {"id": "k-closes", "name": "Closes", "sector": "Prospecting", "sort_order": 2},
            {"id": "k-reqs", "name": "Open Requisitions", "sector": "RAR", "aggregation": "stock", "sort_order": 3},
        ],
    }


async def _database(url: str) -> Database:
    database = Database(url=url)
    await load_seed(database, _payload())
    return database


def test_parse_value():
    assert parse_value("12") == 12.0
    assert parse_value(" 3.5 ") == 3.5
    assert parse_value(0) == 0.0
    assert parse_value("-1") is None
    assert parse_value("abc") is None
    assert parse_value("nan") is None
    assert parse_value("") is None
    assert parse_value(True) is None


def test_plan_writes_covers_every_action():
    existing = {
        "k-calls": LoadedEntry(entry_id="e1", value=10),
        "k-closes": LoadedEntry(entry_id="e2", value=1),
    }
    plan = plan_writes({"k-calls": "12", "k-closes": "  ", "k-reqs": "4"}, existing, CATALOG)
    actions = {item.kpi_id: item.action for item in plan}
    assert actions == {
        "k-calls": WriteAction.UPDATE,
        "k-closes": WriteAction.DELETE,
        "k-reqs": WriteAction.INSERT,
    }
    assert plan[1].entry_id == "e2"
    assert plan[2].sector == "RAR"


def test_blank_without_stored_row_is_a_no_op():
    plan = plan_writes({"k-calls": "", "k-closes": "oops"}, {}, CATALOG)
    assert [(item.kpi_id, item.action) for item in plan] == [("k-closes", WriteAction.SKIP)]


async def test_blank_value_deletes_stored_entry(sqlite_url: str):
    database = await _database(sqlite_url)
    try:
        first = await reporting.save_entry(database, "u1", DAY, {"k-calls": "25", "k-closes": "3", "k-reqs": "abc"})
        assert first.inserted == ["k-calls", "k-closes"]
        assert first.skipped == ["k-reqs"]

        loaded = await reporting.load_entries(database, "u1", DAY)
        assert {kpi_id: entry.value for kpi_id, entry in loaded.items()} == {"k-calls": 25.0, "k-closes": 3.0}

        second = await reporting.save_entry(database, "u1", DAY, {"k-calls": "30", "k-closes": ""})
        assert second.updated == ["k-calls"]
        assert second.deleted == ["k-closes"]
        assert second.inserted == []

        loaded = await reporting.load_entries(database, "u1", DAY)
        assert set(loaded) == {"k-calls"}
        assert loaded["k-calls"].value == 30.0

        assert await reporting.delete_entry(database, "u1", DAY) == 1
        assert await reporting.load_entries(database, "u1", DAY) == {}
    finally:
        await database.dispose()


async def test_failed_write_fails_the_save_and_keeps_other_writes(sqlite_url: str, monkeypatch):
    database = await _database(sqlite_url)
    real_insert = repository.insert_entry

    async def insert_or_fail(session, **kwargs):
        if kwargs["kpi_id"] == "k-closes":
            raise OperationalError("INSERT INTO kpi_entries", {}, Exception("disk I/O error"))
        return await real_insert(session, **kwargs)

    monkeypatch.setattr(repository, "insert_entry", insert_or_fail)
    try:
        with pytest.raises(EntrySaveError) as excinfo:
            await reporting.save_entry(database, "u1", DAY, {"k-calls": "5", "k-closes": "1"})
        assert [kpi_id for kpi_id, _ in excinfo.value.failures] == ["k-closes"]

        loaded = await reporting.load_entries(database, "u1", DAY)
        assert {kpi_id: entry.value for kpi_id, entry in loaded.items()} == {"k-calls": 5.0}
    finally:
        await database.dispose()
