"""Role-gated KPI and job-cost reporting service."""

__version__ = "0.1.0"
