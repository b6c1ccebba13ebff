"""Per-day KPI entry editing routes."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status

from kpi_dashboard.api.dependencies.auth import build_current_user, ensure_can_access
from kpi_dashboard.db.session import Database
from kpi_dashboard.models import User
from kpi_dashboard.schemas import (
    EntryDayResponse,
    EntryDeleteResponse,
    EntrySaveRequest,
    EntrySaveResponse,
    EntryValueSchema,
)
from kpi_dashboard.services import reporting
from kpi_dashboard.services.entry_editor import EntrySaveError
from kpi_dashboard.services.repository import DataServiceError

logger = logging.getLogger(__name__)


def get_entries_router(database: Database) -> APIRouter:
    router = APIRouter(prefix="/entries", tags=["entries"])
    current_user = build_current_user(database)

    @router.get("/{user_id}/{day}", response_model=EntryDayResponse)
    async def load_day(user_id: str, day: date, user: User = Depends(current_user)) -> EntryDayResponse:
        ensure_can_access(user, user_id)
        try:
            loaded = await reporting.load_entries(database, user_id, day)
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return EntryDayResponse(
            user_id=user_id,
            date=day,
            values=[
                EntryValueSchema(kpi_id=kpi_id, entry_id=entry.entry_id, value=entry.value)
                for kpi_id, entry in sorted(loaded.items())
            ],
        )

    @router.put("/{user_id}/{day}", response_model=EntrySaveResponse)
    async def save_day(
        user_id: str,
        day: date,
        payload: EntrySaveRequest,
        user: User = Depends(current_user),
    ) -> EntrySaveResponse:
        ensure_can_access(user, user_id)
        try:
            result = await reporting.save_entry(database, user_id, day, payload.values)
        except EntrySaveError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return EntrySaveResponse(
            inserted=result.inserted,
            updated=result.updated,
            deleted=result.deleted,
            skipped=result.skipped,
        )

    @router.delete("/{user_id}/{day}", response_model=EntryDeleteResponse)
    async def delete_day(user_id: str, day: date, user: User = Depends(current_user)) -> EntryDeleteResponse:
        ensure_can_access(user, user_id)
        try:
            removed = await reporting.delete_entry(database, user_id, day)
        except DataServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        logger.info("Deleted %d entries for %s on %s by %s", removed, user_id, day, user.id)
        return EntryDeleteResponse(deleted=removed)

    return router


__all__ = ["get_entries_router"]
