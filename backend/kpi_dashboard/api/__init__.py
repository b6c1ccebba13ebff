"""HTTP layer for the KPI dashboard."""
