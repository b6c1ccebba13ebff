import math

import pytest

from kpi_dashboard.services.safe_math import close_rate, round_half_up, safe_divide, trend_pct


def test_safe_divide_guards_zero_and_non_finite():
    assert safe_divide(10, 0) == 0.0
    assert safe_divide(10, 0, fallback=-1.0) == -1.0
    assert safe_divide(10, 4) == 2.5
    assert safe_divide(math.inf, 1) == 0.0


def test_trend_examples():
    assert trend_pct(100, 50) == 100
    assert trend_pct(50, 100) == -50
    assert trend_pct(123, 0) == 0
    assert trend_pct(0, 0) == 0


def test_trend_rounds_half_up():
    # 1/8 = 12.5%
    assert trend_pct(9, 8) == 13
    assert trend_pct(7, 8) == -12


def test_close_rate():
    assert close_rate(0, 0) == 0
    assert close_rate(20, 100) == pytest.approx(20.0)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(2.45, 1) == pytest.approx(2.5)
    assert round_half_up(-2.5) == -2
