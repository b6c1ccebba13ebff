"""Database model exports."""

from .jobs import JOB_STATUSES, EmployeeHourlyRate, Job, JobCost
from .kpi import AggregationKind, KPIDefinition, KPIEntry, UserKPI
from .user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "AggregationKind",
    "KPIDefinition",
    "UserKPI",
    "KPIEntry",
    "Job",
    "JobCost",
    "EmployeeHourlyRate",
    "JOB_STATUSES",
]
