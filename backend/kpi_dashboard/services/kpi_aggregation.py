"""KPI aggregation engine.

Raw KPI rows arrive one per (user, date, metric). This module pivots them into
one record per user per day, buckets them into day/week/month chart points and
rolls them up into summary cards. Nothing here touches the database: callers
hand in plain rows plus the KPI catalog, which declares for every metric
whether it is a flow (summed) or a stock (averaged).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Iterable, Mapping, Sequence

import pandas as pd

from kpi_dashboard.config import RateMetric
from kpi_dashboard.models.kpi import AggregationKind
from kpi_dashboard.services.safe_math import close_rate, round_half_up, safe_divide, trend_pct

logger = logging.getLogger(__name__)

MetricValues = Dict[str, float]

_FRAME_COLUMNS = ["date", "user_id", "metric", "value"]


class GroupBy(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class MetricSpec:
    """Catalog entry describing one metric."""

    name: str
    sector: str
    aggregation: AggregationKind = AggregationKind.FLOW
    kpi_id: str | None = None


@dataclass
class RawEntry:
    date: date | datetime | str | None
    user_id: str
    metric: str
    value: float | Decimal | str | None


@dataclass
class PivotedEntry:
    date: date
    user_id: str
    values: MetricValues
    user_name: str | None = None


@dataclass
class ChartPoint:
    period: date
    values: MetricValues


@dataclass
class MetricSummary:
    name: str
    sector: str
    aggregation: AggregationKind
    value: float
    previous: float
    trend: int


@dataclass
class RateSummary:
    name: str
    numerator: float
    denominator: float
    value: float


@dataclass
class KpiAggregate:
    entries: list[PivotedEntry] = field(default_factory=list)
    chart: list[ChartPoint] = field(default_factory=list)
    sectors: dict[str, list[ChartPoint]] = field(default_factory=dict)
    cards: list[MetricSummary] = field(default_factory=list)
    rates: list[RateSummary] = field(default_factory=list)


def coerce_date(value: date | datetime | str | None) -> date | None:
    """Return a ``date`` for ``value`` or ``None`` when it cannot be parsed."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def _coerce_value(value: float | Decimal | str | None) -> float | None:
    if value is None:
        return None
    try:
        number = float(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def bucket_start(day: date, group_by: GroupBy) -> date:
    """Return the first day of the bucket ``day`` falls in.

    Weeks start on Sunday; months are keyed by their first day.
    """

    if group_by == GroupBy.WEEK:
        # date.weekday(): Monday=0 .. Sunday=6
        return day - timedelta(days=(day.weekday() + 1) % 7)
    if group_by == GroupBy.MONTH:
        return day.replace(day=1)
    return day


def build_frame(
    rows: Iterable[RawEntry],
    catalog: Sequence[MetricSpec],
    *,
    start: date | None = None,
    end: date | None = None,
) -> pd.DataFrame:
    """Validate raw rows into a long-format frame restricted to catalog metrics."""

    known = {spec.name for spec in catalog}
    records: list[dict[str, object]] = []
    for row in rows:
        day = coerce_date(row.date)
        if day is None:
            logger.warning("Skipping KPI row for user %s with unparseable date %r", row.user_id, row.date)
            continue
        if row.metric not in known:
            logger.debug("Ignoring KPI row for unknown metric %r", row.metric)
            continue
        value = _coerce_value(row.value)
        if value is None:
            logger.warning("Skipping KPI row %s/%s/%s with unparseable value %r", row.user_id, day, row.metric, row.value)
            continue
        if start and day < start:
            continue
        if end and day > end:
            continue
        records.append({"date": day, "user_id": str(row.user_id), "metric": row.metric, "value": value})
    return pd.DataFrame.from_records(records, columns=_FRAME_COLUMNS)


def _metric_names(catalog: Sequence[MetricSpec]) -> list[str]:
    return [spec.name for spec in catalog]


def _wide(frame: pd.DataFrame, index: str | list[str], names: list[str]) -> pd.DataFrame:
    wide = frame.pivot_table(index=index, columns="metric", values="value", aggfunc="sum", fill_value=0.0)
    return wide.reindex(columns=names, fill_value=0.0).astype(float)


def pivot_entries(
    frame: pd.DataFrame,
    catalog: Sequence[MetricSpec],
    *,
    user_names: Mapping[str, str] | None = None,
) -> list[PivotedEntry]:
    """One record per (date, user), newest first, every catalog metric present."""

    if frame.empty:
        return []
    names = _metric_names(catalog)
    wide = _wide(frame, ["date", "user_id"], names)
    wide = wide.sort_index(ascending=[False, True])
    user_names = user_names or {}
    entries: list[PivotedEntry] = []
    for (day, user_id), row in wide.iterrows():
        entries.append(
            PivotedEntry(
                date=day,
                user_id=user_id,
                values={name: float(row[name]) for name in names},
                user_name=user_names.get(user_id),
            )
        )
    return entries


def chart_series(
    frame: pd.DataFrame,
    catalog: Sequence[MetricSpec],
    group_by: GroupBy = GroupBy.DAY,
) -> list[ChartPoint]:
    """Sum every metric per bucket across all rows and users, oldest bucket first."""

    if frame.empty:
        return []
    names = _metric_names(catalog)
    bucketed = frame.assign(period=frame["date"].map(lambda d: bucket_start(d, group_by)))
    wide = _wide(bucketed, "period", names).sort_index()
    return [
        ChartPoint(period=period, values={name: float(row[name]) for name in names})
        for period, row in wide.iterrows()
    ]


def sector_series(points: Sequence[ChartPoint], catalog: Sequence[MetricSpec]) -> dict[str, list[ChartPoint]]:
    sectors: dict[str, list[str]] = {}
    for spec in catalog:
        sectors.setdefault(spec.sector, []).append(spec.name)
    return {
        sector: [
            ChartPoint(period=point.period, values={name: point.values.get(name, 0.0) for name in names})
            for point in points
        ]
        for sector, names in sectors.items()
    }


def summarize(entries: Sequence[PivotedEntry], catalog: Sequence[MetricSpec]) -> MetricValues:
    """Sum flow metrics and average stock metrics over the pivoted records."""

    summary: MetricValues = {}
    count = len(entries)
    for spec in catalog:
        total = sum(entry.values.get(spec.name, 0.0) for entry in entries)
        if spec.aggregation == AggregationKind.STOCK:
            summary[spec.name] = safe_divide(total, count)
        else:
            summary[spec.name] = total
    return summary


def metric_totals(entries: Sequence[PivotedEntry], names: Iterable[str]) -> MetricValues:
    return {name: sum(entry.values.get(name, 0.0) for entry in entries) for name in names}


def summary_cards(
    current: Sequence[PivotedEntry],
    previous: Sequence[PivotedEntry],
    catalog: Sequence[MetricSpec],
) -> list[MetricSummary]:
    now = summarize(current, catalog)
    before = summarize(previous, catalog)
    cards: list[MetricSummary] = []
    for spec in catalog:
        value = now[spec.name]
        if spec.aggregation == AggregationKind.STOCK:
            # Stock cards show whole units
            value = round_half_up(value)
        cards.append(
            MetricSummary(
                name=spec.name,
                sector=spec.sector,
                aggregation=spec.aggregation,
                value=value,
                previous=before[spec.name],
                trend=trend_pct(now[spec.name], before[spec.name]),
            )
        )
    return cards


def rate_summaries(
    entries: Sequence[PivotedEntry],
    rate_metrics: Sequence[RateMetric],
    catalog: Sequence[MetricSpec],
) -> list[RateSummary]:
    """Derived percentages over period totals; rates naming unknown metrics are dropped."""

    known = set(_metric_names(catalog))
    rates: list[RateSummary] = []
    for rate in rate_metrics:
        if rate.numerator not in known or rate.denominator not in known:
            logger.debug("Skipping rate %s: metrics not in catalog", rate.name)
            continue
        totals = metric_totals(entries, (rate.numerator, rate.denominator))
        numerator = totals[rate.numerator]
        denominator = totals[rate.denominator]
        rates.append(
            RateSummary(
                name=rate.name,
                numerator=numerator,
                denominator=denominator,
                value=round_half_up(close_rate(numerator, denominator), 1),
            )
        )
    return rates


def aggregate(
    rows: Iterable[RawEntry],
    catalog: Sequence[MetricSpec],
    *,
    start: date,
    end: date,
    group_by: GroupBy = GroupBy.DAY,
    previous_rows: Iterable[RawEntry] = (),
    previous_start: date | None = None,
    previous_end: date | None = None,
    rate_metrics: Sequence[RateMetric] = (),
    user_names: Mapping[str, str] | None = None,
) -> KpiAggregate:
    """Run the full pipeline for one period and its comparison period."""

    frame = build_frame(rows, catalog, start=start, end=end)
    entries = pivot_entries(frame, catalog, user_names=user_names)
    previous_frame = build_frame(previous_rows, catalog, start=previous_start, end=previous_end)
    previous_entries = pivot_entries(previous_frame, catalog)
    chart = chart_series(frame, catalog, group_by)
    return KpiAggregate(
        entries=entries,
        chart=chart,
        sectors=sector_series(chart, catalog),
        cards=summary_cards(entries, previous_entries, catalog),
        rates=rate_summaries(entries, rate_metrics, catalog),
    )


__all__ = [
    "MetricValues",
    "GroupBy",
    "MetricSpec",
    "RawEntry",
    "PivotedEntry",
    "ChartPoint",
    "MetricSummary",
    "RateSummary",
    "KpiAggregate",
    "coerce_date",
    "bucket_start",
    "build_frame",
    "pivot_entries",
    "chart_series",
    "sector_series",
    "summarize",
    "metric_totals",
    "summary_cards",
    "rate_summaries",
    "aggregate",
]
