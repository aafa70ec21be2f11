"""Resource planning board state and the reassignment protocol.

A board holds the active resources and a working copy of the board orders.
Moves are applied to the working copy first, then written to the store; a
failed write restores the exact pre-move working copy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from enum import Enum

from boardplan.core.calendar import ViewType, build_window, compute_end, iso_week_start, shift_anchor, visible_range, week_columns
from boardplan.core.errors import PersistError, ValidationError
from boardplan.core.estimator import estimate, is_valid_estimate
from boardplan.core.load import WeeklyLoad, board_loads
from boardplan.core.models import BOARD_STATUSES, AssignmentUpdate, Resource, SchedulingConfig, WorkOrder
from boardplan.data.assignment_store import AssignmentStore
from boardplan.data.feed import Subscription
from boardplan.scheduling.transaction import DragMessage, PendingTransaction, WorkingSet, resolve_drop

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]

# A month touches at most six ISO weeks.
MONTH_WEEKS = 6


class MoveStatus(str, Enum):
    PERSISTED = "persisted"
    REJECTED = "rejected"  # validation failed, nothing changed
    FAILED = "failed"  # write failed, rolled back
    DISCARDED = "discarded"  # board closed while the write was pending


@dataclass(frozen=True)
class MoveOutcome:
    status: MoveStatus
    order_id: str
    message: str = ""
    order: WorkOrder | None = None

    @property
    def ok(self) -> bool:
        return self.status is MoveStatus.PERSISTED


class ScheduleBoard:
    def __init__(
        self,
        store: AssignmentStore,
        *,
        config: SchedulingConfig | None = None,
        anchor: date | None = None,
        view: ViewType = ViewType.WEEK,
        notifier: Notifier | None = None,
    ) -> None:
        self.store = store
        self.config = config or SchedulingConfig()
        self.view = ViewType(view)
        self.anchor = self._normalize_anchor(anchor or date.today())
        self.notifier = notifier
        self.resources: list[Resource] = []
        self.working = WorkingSet()
        self.closed = False
        self._lock = asyncio.Lock()
        self._subscription: Subscription | None = None

    # ---------- Read model ----------

    @property
    def orders(self) -> tuple[WorkOrder, ...]:
        return self.working.orders

    @property
    def day_start(self) -> time:
        return time(hour=self.config.workday_start_hour)

    @property
    def weeks(self) -> list[date]:
        return week_columns(self.anchor, self.config.weeks_to_show)

    @property
    def dates(self) -> list[date]:
        return build_window(self.anchor, self.view, self.config.week_policy)

    def window(self) -> tuple[datetime, datetime]:
        weeks = self.config.weeks_to_show
        if self.view is ViewType.MONTH:
            weeks = max(weeks, MONTH_WEEKS)
        return visible_range(self.anchor, weeks)

    def estimate_for(self, order: WorkOrder) -> float:
        return estimate(order, hours_per_day=self.config.hours_per_day)

    def cell_orders(self, resource_id: str | None, week: date) -> list[WorkOrder]:
        return [o for o in self.orders if o.assigned_resource_id == resource_id and o.week_key == week]

    def day_orders(self, resource_id: str | None, day: date) -> list[WorkOrder]:
        """Orders of `resource_id` running on `day` (from the start date through the end date)."""
        out = []
        for o in self.orders:
            if o.assigned_resource_id != resource_id or o.start is None:
                continue
            last = (o.end or o.start).date()
            if o.start.date() <= day <= max(last, o.start.date()):
                out.append(o)
        return out

    def loads(self, weeks: list[date] | None = None) -> dict[tuple[str, date], WeeklyLoad]:
        return board_loads(
            self.resources,
            weeks if weeks is not None else self.weeks,
            self.orders,
            hours_per_day=self.config.hours_per_day,
            default_weekly_capacity=self.config.default_weekly_capacity,
        )

    def search(self, term: str) -> list[WorkOrder]:
        """Orders whose number, description or part number contain `term` (case-insensitive)."""
        needle = str(term or "").strip().lower()
        if not needle:
            return []
        return [
            o
            for o in self.orders
            if needle in o.order_number.lower() or needle in o.description.lower() or needle in o.part_no.lower()
        ]

    def _normalize_anchor(self, day: date) -> date:
        if self.view is ViewType.MONTH:
            return day.replace(day=1)
        return iso_week_start(day)

    def set_view(self, view: ViewType | str) -> date:
        """Switch between the week and month calendar; the anchor snaps to the new view."""
        self.view = ViewType(view)
        self.anchor = self._normalize_anchor(self.anchor)
        return self.anchor

    def navigate(self, steps: int) -> date:
        self.anchor = self._normalize_anchor(shift_anchor(self.anchor, self.view, steps))
        return self.anchor

    def go_to(self, day: date) -> date:
        self.anchor = self._normalize_anchor(day)
        return self.anchor

    # ---------- Loading ----------

    async def refresh(self) -> None:
        """Full reload of resources and board orders from the store."""
        resources = await self.store.list_active_resources()
        orders = await self.store.list_orders(BOARD_STATUSES, window=self.window())
        if self.closed:
            return
        self.resources = resources
        self.working.reset(orders)
        logger.info("Board loaded: %d resources, %d orders", len(resources), len(orders))

    def attach_feed(self) -> Subscription:
        """Follow store changes instead of manual refreshes."""
        if self._subscription is not None and self._subscription.active:
            return self._subscription

        def _on_snapshot(orders) -> None:
            if self.closed:
                return
            first, last = self.window()
            self.working.reset(
                o
                for o in orders
                if not ((o.end is not None and o.end < first) or (o.start is not None and o.start > last))
            )

        self._subscription = self.store.feed.subscribe(_on_snapshot)
        return self._subscription

    def close(self) -> None:
        self.closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # ---------- Reassignment ----------

    def _validate(self, order_id: str) -> tuple[WorkOrder, float]:
        order = self.working.find(str(order_id))
        if order is None:
            raise ValidationError(f"order {order_id} is not on the board")
        hours = self.estimate_for(order)
        if not is_valid_estimate(hours):
            raise ValidationError(f"order {order_id} has no valid estimated hours ({hours!r})")
        return order, hours

    def plan_move(self, order: WorkOrder, hours: float, resource_id: str | None, target_date: date) -> WorkOrder:
        """The order as it looks after moving to `resource_id` on `target_date`."""
        start = datetime.combine(target_date, self.day_start)
        end = compute_end(start, hours, hours_per_day=self.config.hours_per_day, day_start=self.day_start)
        return replace(
            order,
            assigned_resource_id=resource_id,
            start=start,
            end=end,
            planned_week_start=iso_week_start(start),
            updated_at=datetime.now().replace(microsecond=0),
        )

    async def move_order(self, order_id: str, resource_id: str | None, target_date: date) -> MoveOutcome:
        """Reassign an order to (resource, date); optimistic, rolled back on a failed write."""
        async with self._lock:
            try:
                order, hours = self._validate(order_id)
            except ValidationError as ex:
                logger.warning("Move rejected: %s", ex)
                return MoveOutcome(MoveStatus.REJECTED, str(order_id), str(ex))

            try:
                updated = self.plan_move(order, hours, resource_id, target_date)
            except ValueError as ex:
                logger.warning("Move rejected: cannot place %s: %s", order.order_id, ex)
                return MoveOutcome(MoveStatus.REJECTED, order.order_id, str(ex))
            tx = PendingTransaction(self.working, updated)
            tx.apply()
            update = AssignmentUpdate(
                assigned_resource_id=updated.assigned_resource_id,
                start=updated.start,
                end=updated.end,
                planned_week_start=updated.planned_week_start,
                updated_at=updated.updated_at,
            )
            expected = order.version if self.config.assignment_conflict_check else None

            try:
                version = await self.store.update_assignment(order.order_id, update, expected_version=expected)
            except Exception as raw:
                if isinstance(raw, PersistError):
                    ex = raw
                else:
                    logger.exception("Unexpected error writing %s", order.order_id)
                    ex = PersistError(order.order_id, str(raw) or type(raw).__name__)
                if self.closed:
                    logger.info("Board closed; ignoring failed write of %s: %s", order.order_id, ex)
                    return MoveOutcome(MoveStatus.DISCARDED, order.order_id, str(ex))
                tx.rollback()
                logger.error("Move of %s failed, rolled back: %s", order.order_id, ex)
                await self._audit("Move rolled back", order, updated, str(ex))
                message = f"Could not move order {order.order_number}: {ex.message}"
                if self.notifier is not None:
                    self.notifier(message)
                return MoveOutcome(MoveStatus.FAILED, order.order_id, message, order)
            except BaseException:  # cancelled while the write was pending
                if not self.closed:
                    tx.rollback()
                raise

            if self.closed:
                return MoveOutcome(MoveStatus.DISCARDED, order.order_id, "board closed")
            tx.commit(version)
            await self._audit("Order moved", order, updated, None)
            logger.info(
                "Order %s moved to %s on %s (%.1fh, ends %s)",
                order.order_id,
                updated.assigned_resource_id or "unassigned",
                updated.start.date().isoformat(),
                hours,
                updated.end.isoformat(),
            )
            return MoveOutcome(MoveStatus.PERSISTED, order.order_id, order=self.working.find(order.order_id))

    async def handle_drop(self, message: DragMessage) -> MoveOutcome:
        return await self.move_order(message.dragged_id, message.target_resource_id, message.target_date)

    async def drop(self, dragged_id: str, over_id: str) -> MoveOutcome:
        """Drop a card on a cell id or on another card."""
        message = resolve_drop(dragged_id, over_id, self.orders)
        if message is None:
            return MoveOutcome(MoveStatus.REJECTED, str(dragged_id), f"invalid drop target {over_id!r}")
        return await self.handle_drop(message)

    async def move_to_week(self, order_id: str, week: date) -> MoveOutcome:
        """Move dialog: same resource, start of the chosen week."""
        order = self.working.find(str(order_id))
        resource_id = order.assigned_resource_id if order is not None else None
        return await self.move_order(order_id, resource_id, iso_week_start(week))

    async def _audit(self, message: str, before: WorkOrder, after: WorkOrder, error: str | None) -> None:
        details = (
            f"{before.assigned_resource_id or 'unassigned'}@{before.week_key} -> "
            f"{after.assigned_resource_id or 'unassigned'}@{after.week_key}"
        )
        if error:
            details += f" ({error})"
        await asyncio.to_thread(self.store.repo.log_audit, "ASSIGNMENT", f"{message}: {before.order_number}", details)
