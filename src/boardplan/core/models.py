from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from boardplan.core.calendar import WeekPolicy, iso_week_start


class OrderStatus(str, Enum):
    OPEN = "Open"
    RELEASED = "Released"
    FIRM_PLANNED = "Firm Planned"
    IN_PROGRESS = "In Progress"
    DELAYED = "Delayed"
    DONE = "Done"
    FINISHED = "Finished"
    COMPLETED = "Completed"
    REMOVED = "Removed"

    @classmethod
    def parse(cls, value: str | None) -> "OrderStatus":
        s = str(value or "").strip().lower()
        if not s:
            return cls.OPEN
        for member in cls:
            if member.value.lower() == s or member.name.lower() == s:
                return member
        raise ValueError(f"unknown order status: {value!r}")


# Statuses shown on the planning board.
BOARD_STATUSES: tuple[OrderStatus, ...] = (
    OrderStatus.OPEN,
    OrderStatus.RELEASED,
    OrderStatus.IN_PROGRESS,
    OrderStatus.DELAYED,
    OrderStatus.FIRM_PLANNED,
)


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def parse(cls, value: str | None) -> "Priority":
        s = str(value or "").strip().lower()
        if not s:
            return cls.MEDIUM
        for member in cls:
            if member.value.lower() == s:
                return member
        raise ValueError(f"unknown priority: {value!r}")


class ResourceKind(str, Enum):
    PERSON = "person"
    MACHINE = "machine"
    TOOL = "tool"
    AREA = "area"


@dataclass(frozen=True)
class Resource:
    resource_id: str
    name: str
    kind: ResourceKind = ResourceKind.PERSON
    capacity: float | None = None  # hours per day
    active: bool = True
    color: str | None = None


@dataclass(frozen=True)
class WorkOrder:
    order_id: str
    order_number: str
    quantity: int | None = None
    status: OrderStatus = OrderStatus.OPEN
    priority: Priority = Priority.MEDIUM
    start: datetime | None = None
    end: datetime | None = None
    estimated_hours: float | None = None
    assigned_resource_id: str | None = None
    planned_week_start: date | None = None
    description: str = ""
    part_no: str = ""
    version: int = 0
    updated_at: datetime | None = None

    @property
    def week_key(self) -> date | None:
        """Week bucket of the order: the stored planned week, else the week of `start`."""
        if self.planned_week_start is not None:
            return self.planned_week_start
        if self.start is None:
            return None
        return iso_week_start(self.start)


@dataclass(frozen=True)
class AssignmentUpdate:
    """The only fields a reassignment writes back to the order store."""

    assigned_resource_id: str | None
    start: datetime
    end: datetime
    planned_week_start: date
    updated_at: datetime


@dataclass(frozen=True)
class SchedulingConfig:
    hours_per_day: float = 7.4
    default_weekly_capacity: float = 37.0
    workday_start_hour: int = 8
    weeks_to_show: int = 8
    week_policy: WeekPolicy = WeekPolicy.FULL_WEEK
    assignment_conflict_check: bool = False


@dataclass
class AuditEntry:
    id: int
    timestamp: str
    category: str
    message: str
    details: str | None = None
