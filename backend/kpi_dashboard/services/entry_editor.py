"""Create, update and clear a user's KPI values for one day."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping, Sequence

from kpi_dashboard.db.session import Database
from kpi_dashboard.services import repository
from kpi_dashboard.services.kpi_aggregation import MetricSpec
from kpi_dashboard.services.repository import data_service_call

logger = logging.getLogger(__name__)

FormValue = str | int | float | Decimal | None


class WriteAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    SKIP = "skip"


@dataclass
class LoadedEntry:
    entry_id: str
    value: float


@dataclass
class PlannedWrite:
    kpi_id: str
    sector: str
    action: WriteAction
    value: float | None = None
    entry_id: str | None = None


@dataclass
class SaveResult:
    inserted: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def written(self) -> int:
        return len(self.inserted) + len(self.updated) + len(self.deleted)


class EntrySaveError(RuntimeError):
    """One or more writes of a save failed. Writes that succeeded are not rolled back."""

    def __init__(self, failures: Sequence[tuple[str, BaseException]]):
        self.failures = list(failures)
        kpis = ", ".join(kpi_id for kpi_id, _ in self.failures)
        super().__init__(f"Failed to save {len(self.failures)} KPI value(s): {kpis}")


def is_blank(raw: FormValue) -> bool:
    return raw is None or (isinstance(raw, str) and raw.strip() == "")


def parse_value(raw: FormValue) -> float | None:
    """Parse a non-negative number; ``None`` for anything else (including blanks)."""

    if is_blank(raw) or isinstance(raw, bool):
        return None
    try:
        number = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number < 0:
        return None
    return float(number)


def plan_writes(
    form_values: Mapping[str, FormValue],
    existing: Mapping[str, LoadedEntry],
    catalog: Sequence[MetricSpec],
) -> list[PlannedWrite]:
    """Decide, per catalog KPI, whether the form value inserts, updates, deletes or is ignored.

    KPIs that are blank and have no stored row produce no write at all.
    """

    plan: list[PlannedWrite] = []
    for spec in catalog:
        if spec.kpi_id is None:
            continue
        raw = form_values.get(spec.kpi_id)
        current = existing.get(spec.kpi_id)
        if is_blank(raw):
            if current is not None:
                plan.append(
                    PlannedWrite(spec.kpi_id, spec.sector, WriteAction.DELETE, entry_id=current.entry_id)
                )
            continue
        value = parse_value(raw)
        if value is None:
            logger.warning("Ignoring unparseable value %r for KPI %s", raw, spec.kpi_id)
            plan.append(PlannedWrite(spec.kpi_id, spec.sector, WriteAction.SKIP))
            continue
        if current is not None:
            plan.append(
                PlannedWrite(spec.kpi_id, spec.sector, WriteAction.UPDATE, value=value, entry_id=current.entry_id)
            )
        else:
            plan.append(PlannedWrite(spec.kpi_id, spec.sector, WriteAction.INSERT, value=value))
    return plan


class EntryEditor:
    """Apply a day's form of KPI values for one user.

    Each write runs in its own session so that all of them can be dispatched
    concurrently.
    """

    def __init__(self, database: Database):
        self._database = database

    async def load_entries_for(self, user_id: str, day: date) -> dict[str, LoadedEntry]:
        async with self._database.session() as session:
            with data_service_call("load_entries"):
                rows = await repository.list_entries_for(session, user_id, day)
        loaded: dict[str, LoadedEntry] = {}
        for row in rows:
            loaded.setdefault(row.kpi_id, LoadedEntry(entry_id=row.id, value=float(row.value)))
        return loaded

    async def save_all(
        self,
        user_id: str,
        day: date,
        form_values: Mapping[str, FormValue],
        catalog: Sequence[MetricSpec],
        *,
        existing: Mapping[str, LoadedEntry] | None = None,
    ) -> SaveResult:
        if existing is None:
            existing = await self.load_entries_for(user_id, day)
        plan = plan_writes(form_values, existing, catalog)
        writes = [item for item in plan if item.action != WriteAction.SKIP]

        outcomes = await asyncio.gather(
            *(self._apply(user_id, day, item) for item in writes),
            return_exceptions=True,
        )
        failures = [
            (item.kpi_id, outcome)
            for item, outcome in zip(writes, outcomes)
            if isinstance(outcome, BaseException)
        ]
        if failures:
            logger.error("Saving entries for %s on %s failed for %d KPI(s)", user_id, day, len(failures))
            raise EntrySaveError(failures)

        result = SaveResult()
        buckets = {
            WriteAction.INSERT: result.inserted,
            WriteAction.UPDATE: result.updated,
            WriteAction.DELETE: result.deleted,
            WriteAction.SKIP: result.skipped,
        }
        for item in plan:
            buckets[item.action].append(item.kpi_id)
        logger.info(
            "Saved entries for %s on %s: %d inserted, %d updated, %d deleted, %d skipped",
            user_id,
            day,
            len(result.inserted),
            len(result.updated),
            len(result.deleted),
            len(result.skipped),
        )
        return result

    async def delete_all(self, user_id: str, day: date) -> int:
        async with self._database.session() as session:
            with data_service_call("delete_entries"):
                removed = await repository.delete_entries_for(session, user_id, day)
        logger.info("Removed %d KPI value(s) for %s on %s", removed, user_id, day)
        return removed

    async def _apply(self, user_id: str, day: date, item: PlannedWrite) -> None:
        async with self._database.session() as session:
            with data_service_call(f"{item.action.value}_entry"):
                if item.action == WriteAction.DELETE:
                    await repository.delete_entry(session, item.entry_id)
                elif item.action == WriteAction.UPDATE:
                    await repository.update_entry(session, item.entry_id, value=item.value, sector=item.sector)
                else:
                    await repository.insert_entry(
                        session,
                        user_id=user_id,
                        kpi_id=item.kpi_id,
                        day=day,
                        sector=item.sector,
                        value=item.value,
                    )


__all__ = [
    "FormValue",
    "WriteAction",
    "LoadedEntry",
    "PlannedWrite",
    "SaveResult",
    "EntrySaveError",
    "is_blank",
    "parse_value",
    "plan_writes",
    "EntryEditor",
]
