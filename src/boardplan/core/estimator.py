from __future__ import annotations

import math

from boardplan.core.calendar import HOURS_PER_DAY, weekday_count
from boardplan.core.models import WorkOrder

QUANTITY_HOURS_PER_UNIT = 2


def _explicit_hours(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        return None
    v = float(value)
    if not math.isfinite(v) or v <= 0:
        return None
    return v


def estimate(order: WorkOrder, *, hours_per_day: float = HOURS_PER_DAY) -> float:
    """Estimated work hours of an order, from whichever fields are present.

    Precedence: explicit estimate, weekdays spanned by start/end, quantity,
    one workday. Always positive.
    """
    explicit = _explicit_hours(order.estimated_hours)
    if explicit is not None:
        return explicit

    if order.start is not None and order.end is not None:
        days = weekday_count(order.start, order.end)
        return float(round(max(days, 1) * hours_per_day))

    if order.quantity:
        return float(max(int(order.quantity), 1) * QUANTITY_HOURS_PER_UNIT)

    return float(hours_per_day)


def is_valid_estimate(hours) -> bool:
    return isinstance(hours, (int, float)) and not isinstance(hours, bool) and math.isfinite(hours) and hours > 0
