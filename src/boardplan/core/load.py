"""Weekly load of resources.

Pure functions over (resources, weeks, orders); nothing here is cached or
mutated, so the board can recompute on every render.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from enum import Enum

from boardplan.core.calendar import HOURS_PER_DAY
from boardplan.core.estimator import estimate
from boardplan.core.models import Resource, WorkOrder

WORKDAYS_PER_WEEK = 5
DEFAULT_WEEKLY_CAPACITY = 37.0
NEAR_CAPACITY_PCT = 85
OVER_CAPACITY_PCT = 100


class LoadLevel(str, Enum):
    NORMAL = "normal"
    NEAR_CAPACITY = "near_capacity"
    OVER_CAPACITY = "over_capacity"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class WeeklyLoad:
    resource_id: str
    week_start: date
    hours: float
    capacity: float
    percentage: int | None
    level: LoadLevel
    order_ids: tuple[str, ...] = ()

    @property
    def label(self) -> str:
        cap = f"{self.capacity:g}h"
        if self.percentage is None:
            return f"{round(self.hours)}h / {cap}"
        return f"{round(self.hours)}h / {cap} ({self.percentage}%)"


def weekly_capacity(resource: Resource, *, default_weekly_capacity: float = DEFAULT_WEEKLY_CAPACITY) -> float:
    if resource.capacity is None:
        return float(default_weekly_capacity)
    return float(resource.capacity) * WORKDAYS_PER_WEEK


def classify(percentage: int | None) -> LoadLevel:
    if percentage is None:
        return LoadLevel.INDETERMINATE
    if percentage > OVER_CAPACITY_PCT:
        return LoadLevel.OVER_CAPACITY
    if percentage > NEAR_CAPACITY_PCT:
        return LoadLevel.NEAR_CAPACITY
    return LoadLevel.NORMAL


def _half_up(value: float) -> int:
    # Math.round semantics; Python's round() is banker's rounding.
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def load(
    resource: Resource,
    week: date,
    orders: Iterable[WorkOrder],
    *,
    hours_per_day: float = HOURS_PER_DAY,
    default_weekly_capacity: float = DEFAULT_WEEKLY_CAPACITY,
) -> WeeklyLoad:
    """Assigned hours vs. capacity of one resource in the ISO week starting at `week`."""
    hours = 0.0
    ids: list[str] = []
    for order in orders:
        if order.assigned_resource_id != resource.resource_id or order.week_key != week:
            continue
        hours += estimate(order, hours_per_day=hours_per_day)
        ids.append(order.order_id)

    capacity = weekly_capacity(resource, default_weekly_capacity=default_weekly_capacity)
    percentage = _half_up(hours / capacity * 100) if capacity > 0 else None
    return WeeklyLoad(
        resource_id=resource.resource_id,
        week_start=week,
        hours=hours,
        capacity=capacity,
        percentage=percentage,
        level=classify(percentage),
        order_ids=tuple(ids),
    )


def board_loads(
    resources: Iterable[Resource],
    weeks: Iterable[date],
    orders: Iterable[WorkOrder],
    *,
    hours_per_day: float = HOURS_PER_DAY,
    default_weekly_capacity: float = DEFAULT_WEEKLY_CAPACITY,
) -> dict[tuple[str, date], WeeklyLoad]:
    """Load of every (resource, week) cell of a board grid."""
    orders = list(orders)
    weeks = list(weeks)
    out: dict[tuple[str, date], WeeklyLoad] = {}
    for resource in resources:
        for week in weeks:
            out[(resource.resource_id, week)] = load(
                resource,
                week,
                orders,
                hours_per_day=hours_per_day,
                default_weekly_capacity=default_weekly_capacity,
            )
    return out


def aggregate(orders: Iterable[WorkOrder], *, hours_per_day: float = HOURS_PER_DAY) -> dict[tuple[str, date], float]:
    """Total estimated hours per (resource, week) over every assigned order."""
    totals: dict[tuple[str, date], float] = {}
    for order in orders:
        if order.assigned_resource_id is None:
            continue
        week = order.week_key
        if week is None:
            continue
        key = (order.assigned_resource_id, week)
        totals[key] = totals.get(key, 0.0) + estimate(order, hours_per_day=hours_per_day)
    return totals
