"""Pydantic schemas for the KPI catalog and KPI series."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from kpi_dashboard.models.kpi import AggregationKind
from kpi_dashboard.services.kpi_aggregation import GroupBy


class KPIDefinitionSchema(BaseModel):
    id: str
    name: str
    sector: str
    aggregation: AggregationKind
    sort_order: int = 0

    class Config:
        from_attributes = True


class MetricCardSchema(BaseModel):
    name: str
    sector: str
    aggregation: AggregationKind
    value: float
    previous: float
    trend: int = Field(..., description="Whole-percent change against the previous period")


class RateCardSchema(BaseModel):
    name: str
    numerator: float
    denominator: float
    value: float = Field(..., description="numerator / denominator x 100 over period totals")


class ChartPointSchema(BaseModel):
    period: date
    values: dict[str, float]


class PivotedEntrySchema(BaseModel):
    date: date
    user_id: str
    user_name: str | None = None
    values: dict[str, float]


class KpiSeriesResponse(BaseModel):
    user_id: str
    group_by: GroupBy
    start: date
    end: date
    previous_start: date
    previous_end: date
    cards: list[MetricCardSchema]
    rates: list[RateCardSchema]
    chart_series: list[ChartPointSchema]
    sector_series: dict[str, list[ChartPointSchema]]
    entries: list[PivotedEntrySchema]
    recent_entries: list[PivotedEntrySchema]

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "all",
                "group_by": "week",
                "start": "2025-05-02",
                "end": "2025-06-01",
                "previous_start": "2025-04-01",
                "previous_end": "2025-05-01",
                "cards": [
                    {
                        "name": "Calls Made",
                        "sector": "Prospecting",
                        "aggregation": "flow",
                        "value": 420,
                        "previous": 350,
                        "trend": 20,
                    }
                ],
                "rates": [{"name": "PCL", "numerator": 12, "denominator": 420, "value": 2.9}],
                "chart_series": [{"period": "2025-05-25", "values": {"Calls Made": 96}}],
                "sector_series": {"Prospecting": [{"period": "2025-05-25", "values": {"Calls Made": 96}}]},
                "entries": [],
                "recent_entries": [],
            }
        }


__all__ = [
    "KPIDefinitionSchema",
    "MetricCardSchema",
    "RateCardSchema",
    "ChartPointSchema",
    "PivotedEntrySchema",
    "KpiSeriesResponse",
]
