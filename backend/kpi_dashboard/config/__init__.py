"""Configuration package for the KPI dashboard service."""

from .settings import AppSettings, RateMetric, get_settings

__all__ = ["AppSettings", "RateMetric", "get_settings"]
