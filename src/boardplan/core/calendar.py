"""Business-day calendar.

Work is placed on weekdays only (Monday to Friday). A workday holds
`hours_per_day` hours of work starting at the workday start hour; work that
does not fit in one day continues on the next weekday at the workday start.
"""

from __future__ import annotations

import calendar as _calendar
import logging
from datetime import date, datetime, time, timedelta
from enum import Enum

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 7.4
WORKDAY_START = time(hour=8)
SAFETY_LIMIT_YEARS = 5

_EPS = 1e-9


class ViewType(str, Enum):
    WEEK = "week"
    MONTH = "month"


class WeekPolicy(str, Enum):
    """How a week view is laid out."""

    FULL_WEEK = "full_week"  # Monday..Sunday, weekend cells shown
    WORKWEEK = "workweek"  # Monday..Friday only


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_weekday(value: date | datetime) -> bool:
    return _as_date(value).weekday() < 5


def iso_week_start(value: date | datetime) -> date:
    """Monday of the ISO week containing `value`."""
    d = _as_date(value)
    return d - timedelta(days=d.weekday())


def weekday_count(first: date | datetime, last: date | datetime) -> int:
    """Weekdays between two calendar dates, both ends included. 0 if `last` < `first`."""
    d0 = _as_date(first)
    d1 = _as_date(last)
    if d1 < d0:
        return 0
    count = 0
    d = d0
    while d <= d1:
        if is_weekday(d):
            count += 1
        d += timedelta(days=1)
    return count


def _add_years(d: datetime, years: int) -> datetime:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # Feb 29 -> Feb 28
        return d.replace(year=d.year + years, day=28)


def compute_end(
    start: datetime,
    hours: float,
    *,
    hours_per_day: float = HOURS_PER_DAY,
    day_start: time = WORKDAY_START,
) -> datetime:
    """Instant at which `hours` of work starting at `start` completes.

    Weekends are skipped. The first weekday consumes from `start` itself; every
    following weekday starts at `day_start`. Returns `start` for non-positive
    hours. The walk gives up after SAFETY_LIMIT_YEARS and returns the day it
    reached (logged as a warning, not raised).
    """
    if hours is None or hours <= 0:
        return start
    if hours_per_day <= 0:
        raise ValueError(f"hours_per_day must be positive: {hours_per_day!r}")

    remaining = float(hours)
    current = start
    limit = _add_years(start, SAFETY_LIMIT_YEARS)

    while remaining > _EPS:
        if is_weekday(current):
            today = min(remaining, hours_per_day)
            remaining -= today
            if remaining <= _EPS:
                return current + timedelta(seconds=round(today * 3600))
        current = datetime.combine(current.date() + timedelta(days=1), day_start)
        if current > limit:
            logger.warning(
                "compute_end exceeded safety limit (start=%s, hours=%s); returning %s",
                start.isoformat(),
                hours,
                current.isoformat(),
            )
            break
    return current


def build_window(
    anchor: date | datetime,
    view: ViewType = ViewType.WEEK,
    policy: WeekPolicy = WeekPolicy.FULL_WEEK,
) -> list[date]:
    """Dates shown by a calendar view around `anchor`."""
    view = ViewType(view)
    policy = WeekPolicy(policy)
    d = _as_date(anchor)
    if view is ViewType.MONTH:
        first = d.replace(day=1)
        days = _calendar.monthrange(first.year, first.month)[1]
        return [first + timedelta(days=i) for i in range(days)]

    monday = iso_week_start(d)
    dates = [monday + timedelta(days=i) for i in range(7)]
    if policy is WeekPolicy.WORKWEEK:
        dates = [x for x in dates if is_weekday(x)]
    return dates


def week_columns(anchor: date | datetime, count: int = 8) -> list[date]:
    """`count` consecutive week starts beginning with the week of `anchor`."""
    monday = iso_week_start(anchor)
    return [monday + timedelta(weeks=i) for i in range(max(int(count), 0))]


def visible_range(anchor: date | datetime, weeks: int = 8) -> tuple[datetime, datetime]:
    """Load window of the weekly board: one week before the first column to the end of the last."""
    monday = iso_week_start(anchor)
    first = datetime.combine(monday - timedelta(weeks=1), time.min)
    last_day = monday + timedelta(weeks=max(int(weeks), 1)) - timedelta(days=1)
    return first, datetime.combine(last_day, time.max)


def shift_anchor(anchor: date | datetime, view: ViewType, steps: int) -> date:
    """Move an anchor by whole weeks or months (previous/next navigation)."""
    d = _as_date(anchor)
    if ViewType(view) is ViewType.WEEK:
        return d + timedelta(weeks=steps)
    month_index = d.year * 12 + (d.month - 1) + steps
    year, month = divmod(month_index, 12)
    month += 1
    day = min(d.day, _calendar.monthrange(year, month)[1])
    return date(year, month, day)
