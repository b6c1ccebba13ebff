from __future__ import annotations

from datetime import date

import pytest

from kpi_dashboard.config import RateMetric
from kpi_dashboard.models import AggregationKind
from kpi_dashboard.services.kpi_aggregation import (
    GroupBy,
    MetricSpec,
    RawEntry,
    aggregate,
    bucket_start,
    build_frame,
    chart_series,
    pivot_entries,
    summarize,
)

CATALOG = [
    MetricSpec("Calls Made", "Prospecting", AggregationKind.FLOW, kpi_id="k-calls"),
    MetricSpec("Closes", "Prospecting", AggregationKind.FLOW, kpi_id="k-closes"),
    MetricSpec("Open Requisitions", "RAR", AggregationKind.STOCK, kpi_id="k-reqs"),
]

RATES = [
    RateMetric(name="PCL", numerator="Closes", denominator="Calls Made"),
    RateMetric(name="Req. Close Rate", numerator="Closes", denominator="Open Requisitions"),
    RateMetric(name="Unknown", numerator="Meetings", denominator="Calls Made"),
]


def _rows():
    return [
        RawEntry(date(2025, 6, 2), "u1", "Calls Made", 40),
        RawEntry(date(2025, 6, 2), "u1", "Closes", 2),
        RawEntry(date(2025, 6, 2), "u1", "Open Requisitions", 10),
        RawEntry(date(2025, 6, 2), "u2", "Calls Made", 20),
        RawEntry("2025-06-05", "u1", "Calls Made", "30"),
        RawEntry(date(2025, 6, 5), "u1", "Open Requisitions", 6),
        RawEntry(date(2025, 6, 9), "u2", "Closes", 1),
    ]


def test_build_frame_skips_bad_rows(caplog):
    rows = _rows() + [
        RawEntry("not-a-date", "u1", "Calls Made", 5),
        RawEntry(date(2025, 6, 3), "u1", "Calls Made", "abc"),
        RawEntry(date(2025, 6, 3), "u1", "Meetings", 4),
        RawEntry(date(2025, 5, 1), "u1", "Calls Made", 4),
    ]
    with caplog.at_level("WARNING"):
        frame = build_frame(rows, CATALOG, start=date(2025, 6, 1), end=date(2025, 6, 30))
    assert len(frame) == len(_rows())
    assert "unparseable date" in caplog.text
    assert "unparseable value" in caplog.text


def test_pivot_entries_orders_newest_first_and_fills_missing_metrics():
    entries = pivot_entries(build_frame(_rows(), CATALOG), CATALOG, user_names={"u1": "Ana"})
    keys = [(entry.date, entry.user_id) for entry in entries]
    assert keys == [
        (date(2025, 6, 9), "u2"),
        (date(2025, 6, 5), "u1"),
        (date(2025, 6, 2), "u1"),
        (date(2025, 6, 2), "u2"),
    ]
    u2_first = entries[3]
    assert u2_first.values == {"Calls Made": 20.0, "Closes": 0.0, "Open Requisitions": 0.0}
    assert entries[2].user_name == "Ana"
    assert entries[0].user_name is None


def test_duplicate_rows_for_the_same_day_are_summed():
    rows = [
        RawEntry(date(2025, 6, 2), "u1", "Calls Made", 4),
        RawEntry(date(2025, 6, 2), "u1", "Calls Made", 6),
    ]
    entries = pivot_entries(build_frame(rows, CATALOG), CATALOG)
    assert len(entries) == 1
    assert entries[0].values["Calls Made"] == 10.0


def test_bucket_start_weeks_begin_on_sunday():
    # 2025-06-04 is a Wednesday
    assert bucket_start(date(2025, 6, 4), GroupBy.WEEK) == date(2025, 6, 1)
    assert bucket_start(date(2025, 6, 1), GroupBy.WEEK) == date(2025, 6, 1)
    assert bucket_start(date(2025, 6, 7), GroupBy.WEEK) == date(2025, 6, 1)
    assert bucket_start(date(2025, 6, 8), GroupBy.WEEK) == date(2025, 6, 8)
    assert bucket_start(date(2025, 6, 17), GroupBy.MONTH) == date(2025, 6, 1)
    assert bucket_start(date(2025, 6, 17), GroupBy.DAY) == date(2025, 6, 17)


def test_chart_series_by_week_is_chronological():
    points = chart_series(build_frame(_rows(), CATALOG), CATALOG, GroupBy.WEEK)
    assert [point.period for point in points] == [date(2025, 6, 1), date(2025, 6, 8)]
    assert points[0].values["Calls Made"] == 90.0
    assert points[0].values["Open Requisitions"] == 16.0
    assert points[1].values == {"Calls Made": 0.0, "Closes": 1.0, "Open Requisitions": 0.0}


def test_summarize_sums_flow_and_averages_stock():
    entries = pivot_entries(build_frame(_rows(), CATALOG), CATALOG)
    summary = summarize(entries, CATALOG)
    assert summary["Calls Made"] == 90.0
    assert summary["Closes"] == 3.0
    # (10 + 6 + 0 + 0) over four pivoted records
    assert summary["Open Requisitions"] == pytest.approx(4.0)
    assert summarize([], CATALOG)["Open Requisitions"] == 0.0


def test_aggregate_cards_rates_and_sectors():
    previous = [
        RawEntry(date(2025, 5, 20), "u1", "Calls Made", 45),
        RawEntry(date(2025, 5, 20), "u1", "Closes", 0),
    ]
    result = aggregate(
        _rows(),
        CATALOG,
        start=date(2025, 6, 1),
        end=date(2025, 6, 30),
        group_by=GroupBy.DAY,
        previous_rows=previous,
        previous_start=date(2025, 5, 1),
        previous_end=date(2025, 5, 31),
        rate_metrics=RATES,
    )
    cards = {card.name: card for card in result.cards}
    assert cards["Calls Made"].value == 90.0
    assert cards["Calls Made"].previous == 45.0
    assert cards["Calls Made"].trend == 100
    assert cards["Closes"].trend == 0
    assert cards["Open Requisitions"].value == 4.0

    rates = {rate.name: rate for rate in result.rates}
    assert set(rates) == {"PCL", "Req. Close Rate"}
    assert rates["PCL"].value == pytest.approx(3.3)
    assert rates["Req. Close Rate"].value == pytest.approx(18.8)

    assert set(result.sectors) == {"Prospecting", "RAR"}
    assert set(result.sectors["RAR"][0].values) == {"Open Requisitions"}
    assert len(result.sectors["Prospecting"]) == len(result.chart) == 3


def test_aggregate_empty_period():
    result = aggregate([], CATALOG, start=date(2025, 6, 1), end=date(2025, 6, 30), rate_metrics=RATES)
    assert result.entries == []
    assert result.chart == []
    assert [card.value for card in result.cards] == [0.0, 0.0, 0.0]
    assert all(rate.value == 0.0 for rate in result.rates)


def test_stock_card_is_rounded_to_whole_units():
    rows = [
        RawEntry(date(2025, 6, 2), "u1", "Open Requisitions", 3),
        RawEntry(date(2025, 6, 3), "u1", "Open Requisitions", 6),
    ]
    result = aggregate(rows, CATALOG, start=date(2025, 6, 1), end=date(2025, 6, 30))
    cards = {card.name: card for card in result.cards}
    # mean of 3 and 6 is 4.5
    assert cards["Open Requisitions"].value == 5
