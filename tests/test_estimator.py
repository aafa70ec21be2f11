from __future__ import annotations

from datetime import datetime

from boardplan.core.estimator import estimate, is_valid_estimate
from boardplan.core.models import WorkOrder


def _order(**kwargs) -> WorkOrder:
    return WorkOrder(order_id="o1", order_number="WO-1", **kwargs)


def test_explicit_estimate_wins():
    order = _order(
        estimated_hours=12.5,
        start=datetime(2024, 3, 4, 8),
        end=datetime(2024, 3, 8, 16),
        quantity=100,
    )
    assert estimate(order) == 12.5


def test_dates_count_weekdays_times_hours_per_day_rounded():
    # Mon..Fri -> 5 * 7.4 = 37
    order = _order(start=datetime(2024, 3, 4, 8), end=datetime(2024, 3, 8, 16))
    assert estimate(order) == 37

    # Fri..Mon spans 2 weekdays -> 14.8 -> 15
    order = _order(start=datetime(2024, 3, 8, 8), end=datetime(2024, 3, 11, 9))
    assert estimate(order) == 15


def test_dates_on_weekend_only_count_as_one_day():
    order = _order(start=datetime(2024, 3, 9, 8), end=datetime(2024, 3, 10, 8))
    assert estimate(order) == 7


def test_quantity_fallback():
    assert estimate(_order(quantity=10)) == 20


def test_quantity_below_one_is_clamped():
    assert estimate(_order(quantity=-4)) == 2


def test_default_is_one_workday():
    assert estimate(_order()) == 7.4
    assert estimate(_order(quantity=0)) == 7.4


def test_non_positive_or_bogus_explicit_estimate_falls_through():
    assert estimate(_order(estimated_hours=0, quantity=3)) == 6
    assert estimate(_order(estimated_hours=-2)) == 7.4
    assert estimate(_order(estimated_hours=float("nan"))) == 7.4


def test_only_one_date_present_is_ignored():
    assert estimate(_order(start=datetime(2024, 3, 4, 8), quantity=1)) == 2


def test_custom_hours_per_day():
    order = _order(start=datetime(2024, 3, 4, 8), end=datetime(2024, 3, 5, 8))
    assert estimate(order, hours_per_day=8) == 16
    assert estimate(_order(), hours_per_day=8) == 8


def test_is_valid_estimate():
    assert is_valid_estimate(1.5)
    assert not is_valid_estimate(0)
    assert not is_valid_estimate(-1)
    assert not is_valid_estimate(float("inf"))
    assert not is_valid_estimate(True)
    assert not is_valid_estimate(None)
