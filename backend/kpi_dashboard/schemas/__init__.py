"""Pydantic schema exports."""

from .costs import (
    CostSeriesRequest,
    CostSeriesResponse,
    EmployeeRateSchema,
    EmployeeRateUpdateRequest,
    JobAllocationSchema,
    MonthlyCostSchema,
)
from .entries import (
    EntryDayResponse,
    EntryDeleteResponse,
    EntrySaveRequest,
    EntrySaveResponse,
    EntryValueSchema,
)
from .kpi import (
    ChartPointSchema,
    KPIDefinitionSchema,
    KpiSeriesResponse,
    MetricCardSchema,
    PivotedEntrySchema,
    RateCardSchema,
)
from .users import HealthResponse, UserSchema

__all__ = [
    "CostSeriesRequest",
    "CostSeriesResponse",
    "EmployeeRateSchema",
    "EmployeeRateUpdateRequest",
    "JobAllocationSchema",
    "MonthlyCostSchema",
    "EntryDayResponse",
    "EntryDeleteResponse",
    "EntrySaveRequest",
    "EntrySaveResponse",
    "EntryValueSchema",
    "ChartPointSchema",
    "KPIDefinitionSchema",
    "KpiSeriesResponse",
    "MetricCardSchema",
    "PivotedEntrySchema",
    "RateCardSchema",
    "HealthResponse",
    "UserSchema",
]
