"""Pydantic schemas for editing one user's KPI values for one day."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class EntryValueSchema(BaseModel):
    kpi_id: str
    entry_id: str
    value: float


class EntryDayResponse(BaseModel):
    user_id: str
    date: date
    values: list[EntryValueSchema]


class EntrySaveRequest(BaseModel):
    values: dict[str, str | float | None] = Field(
        default_factory=dict,
        description="KPI id to raw form value; blank clears a stored value",
        examples=[{"kpi-calls": "25", "kpi-closes": ""}],
    )


class EntrySaveResponse(BaseModel):
    inserted: list[str]
    updated: list[str]
    deleted: list[str]
    skipped: list[str] = Field(..., description="KPI ids whose value could not be parsed")


class EntryDeleteResponse(BaseModel):
    deleted: int


__all__ = [
    "EntryValueSchema",
    "EntryDayResponse",
    "EntrySaveRequest",
    "EntrySaveResponse",
    "EntryDeleteResponse",
]
