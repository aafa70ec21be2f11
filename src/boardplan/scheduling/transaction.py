from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from boardplan.core.models import WorkOrder

logger = logging.getLogger(__name__)

CELL_SEPARATOR = "|"
UNASSIGNED = "unassigned"


@dataclass(frozen=True)
class DragMessage:
    """A drop of an order card onto a board cell, independent of the UI toolkit."""

    dragged_id: str
    target_resource_id: str | None
    target_date: date


def cell_id(resource_id: str | None, day: date) -> str:
    return f"{resource_id or UNASSIGNED}{CELL_SEPARATOR}{day.isoformat()}"


def parse_cell_id(value: str) -> tuple[str | None, date]:
    """'<resource>|YYYY-MM-DD' -> (resource_id or None, date)."""
    resource, sep, day = str(value).partition(CELL_SEPARATOR)
    if not sep or not resource or not day:
        raise ValueError(f"invalid cell id: {value!r}")
    return (None if resource == UNASSIGNED else resource), date.fromisoformat(day)


def resolve_drop(dragged_id: str, over_id: str, orders: list[WorkOrder] | tuple[WorkOrder, ...]) -> DragMessage | None:
    """Turn a raw drop target into a DragMessage.

    The target is either a cell id or the id of another order card, in which
    case the drop lands in that card's cell. Returns None when the target
    cannot be resolved.
    """
    over = str(over_id)
    if CELL_SEPARATOR not in over:
        target = next((o for o in orders if o.order_id == over), None)
        if target is None or target.week_key is None:
            return None
        return DragMessage(str(dragged_id), target.assigned_resource_id, target.week_key)
    try:
        resource_id, day = parse_cell_id(over)
    except ValueError:
        logger.warning("Ignoring drop on unparseable target %r", over_id)
        return None
    return DragMessage(str(dragged_id), resource_id, day)


class WorkingSet:
    """The board's mutable in-memory copy of the orders.

    Only full refreshes and reassignment transactions change it.
    """

    def __init__(self, orders=()) -> None:
        self.orders: tuple[WorkOrder, ...] = tuple(orders)

    def find(self, order_id: str) -> WorkOrder | None:
        return next((o for o in self.orders if o.order_id == order_id), None)

    def replace(self, order: WorkOrder) -> None:
        self.orders = tuple(order if o.order_id == order.order_id else o for o in self.orders)

    def reset(self, orders) -> None:
        self.orders = tuple(orders)


class TxState(str, Enum):
    IDLE = "idle"
    APPLIED = "applied"
    PERSISTED = "persisted"
    ROLLED_BACK = "rolled_back"


class PendingTransaction:
    """Optimistic change of one order with a snapshot to roll back to."""

    def __init__(self, working: WorkingSet, updated: WorkOrder) -> None:
        self.working = working
        self.updated = updated
        self.snapshot: tuple[WorkOrder, ...] | None = None
        self.state = TxState.IDLE

    @property
    def order_id(self) -> str:
        return self.updated.order_id

    def apply(self) -> None:
        if self.state is not TxState.IDLE:
            raise RuntimeError(f"cannot apply a transaction in state {self.state.value}")
        self.snapshot = self.working.orders
        self.working.replace(self.updated)
        self.state = TxState.APPLIED

    def commit(self, version: int | None = None) -> None:
        if self.state is not TxState.APPLIED:
            raise RuntimeError(f"cannot commit a transaction in state {self.state.value}")
        if version is not None:
            current = self.working.find(self.order_id)
            if current is not None:
                self.working.replace(replace(current, version=version))
        self.snapshot = None
        self.state = TxState.PERSISTED

    def rollback(self) -> None:
        if self.state is not TxState.APPLIED:
            raise RuntimeError(f"cannot roll back a transaction in state {self.state.value}")
        self.working.reset(self.snapshot or ())
        self.snapshot = None
        self.state = TxState.ROLLED_BACK
