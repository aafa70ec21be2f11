from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from datetime import date, datetime

from boardplan.core.calendar import WeekPolicy
from boardplan.core.errors import ConflictError, PersistError
from boardplan.core.models import (
    AssignmentUpdate,
    AuditEntry,
    OrderStatus,
    Priority,
    Resource,
    ResourceKind,
    SchedulingConfig,
    WorkOrder,
)
from boardplan.data.db import Db
from boardplan.data.excel_io import coerce_float

logger = logging.getLogger(__name__)

_ORDER_COLUMNS = (
    "order_id, order_number, description, part_no, quantity, status, priority, "
    "start_at, end_at, estimated_hours, assigned_resource_id, planned_week_start, version, updated_at"
)


def _dt(value: str | None) -> datetime | None:
    if value is None or str(value).strip() == "":
        return None
    return datetime.fromisoformat(str(value))


def _d(value: str | None) -> date | None:
    if value is None or str(value).strip() == "":
        return None
    return date.fromisoformat(str(value)[:10])


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def order_from_row(row: sqlite3.Row) -> WorkOrder:
    return WorkOrder(
        order_id=str(row["order_id"]),
        order_number=str(row["order_number"] or row["order_id"]),
        description=str(row["description"] or ""),
        part_no=str(row["part_no"] or ""),
        quantity=int(row["quantity"]) if row["quantity"] is not None else None,
        status=OrderStatus.parse(row["status"]),
        priority=Priority.parse(row["priority"]),
        start=_dt(row["start_at"]),
        end=_dt(row["end_at"]),
        estimated_hours=coerce_float(row["estimated_hours"]),
        assigned_resource_id=str(row["assigned_resource_id"]) if row["assigned_resource_id"] else None,
        planned_week_start=_d(row["planned_week_start"]),
        version=int(row["version"] or 0),
        updated_at=_dt(row["updated_at"]),
    )


class Repository:
    def __init__(self, db: Db):
        self.db = db

    # ---------- Audit ----------

    def log_audit(self, category: str, message: str, details: str | None = None) -> None:
        """Record a business event in the audit log."""
        try:
            with self.db.connect() as con:
                con.execute(
                    "INSERT INTO audit_log (category, message, details) VALUES (?, ?, ?)",
                    (category, message, details),
                )
        except sqlite3.Error:
            # Audit failures must not break the caller.
            logger.exception("Failed to write audit log entry %s: %s", category, message)

    def get_recent_audit_entries(self, limit: int = 100) -> list[AuditEntry]:
        with self.db.connect() as con:
            rows = con.execute("SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [
                AuditEntry(
                    id=row["id"],
                    timestamp=row["timestamp"],
                    category=row["category"],
                    message=row["message"],
                    details=row["details"],
                )
                for row in rows
            ]

    # ---------- Config ----------

    def get_config(self, *, key: str, default: str | None = None) -> str | None:
        key = str(key).strip()
        if not key:
            raise ValueError("empty config key")
        with self.db.connect() as con:
            row = con.execute("SELECT config_value FROM app_config WHERE config_key = ?", (key,)).fetchone()
        if row is None:
            return default
        return str(row[0])

    def set_config(self, *, key: str, value: str) -> None:
        key = str(key).strip()
        if not key:
            raise ValueError("empty config key")
        old = self.get_config(key=key, default="(none)")
        with self.db.connect() as con:
            con.execute(
                """
                INSERT INTO app_config(config_key, config_value, updated_at)
                VALUES(?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(config_key) DO UPDATE SET
                    config_value = excluded.config_value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, str(value)),
            )
        self.log_audit("CONFIG", f"Updated '{key}'", f"From '{old}' to '{value}'")

    def _positive_config(self, key: str, default: float) -> float:
        raw = self.get_config(key=key)
        value = coerce_float(raw)
        if value is None:
            return default
        if not value > 0:
            logger.warning("Invalid %s %r in config (must be > 0), using %s", key, raw, default)
            return default
        return value

    def get_scheduling_config(self) -> SchedulingConfig:
        base = SchedulingConfig()
        hours_per_day = self._positive_config("hours_per_day", base.hours_per_day)
        weekly = self._positive_config("default_weekly_capacity", base.default_weekly_capacity)
        start_hour = int(self.get_config(key="workday_start_hour", default=str(base.workday_start_hour)) or 8)
        weeks = int(self.get_config(key="weeks_to_show", default=str(base.weeks_to_show)) or 8)
        policy_raw = self.get_config(key="week_policy", default=base.week_policy.value) or base.week_policy.value
        try:
            policy = WeekPolicy(policy_raw.strip().lower())
        except ValueError:
            logger.warning("Invalid week_policy %r in config, using %s", policy_raw, base.week_policy.value)
            policy = base.week_policy
        conflict_raw = self.get_config(key="assignment_conflict_check", default="0") or "0"
        return SchedulingConfig(
            hours_per_day=float(hours_per_day),
            default_weekly_capacity=float(weekly),
            workday_start_hour=max(0, min(23, start_hour)),
            weeks_to_show=max(1, weeks),
            week_policy=policy,
            assignment_conflict_check=conflict_raw.strip().lower() in {"1", "true", "yes"},
        )

    # ---------- Resources ----------

    def upsert_resource(
        self,
        *,
        resource_id: str,
        name: str,
        kind: ResourceKind | str = ResourceKind.PERSON,
        capacity: float | None = None,
        active: bool = True,
        color: str | None = None,
    ) -> None:
        resource_id = str(resource_id).strip()
        if not resource_id:
            raise ValueError("empty resource_id")
        kind = ResourceKind(kind)
        with self.db.connect() as con:
            con.execute(
                """
                INSERT INTO resource(resource_id, name, kind, capacity_per_day, color, is_active)
                VALUES(?, ?, ?, ?, ?, ?)
                ON CONFLICT(resource_id) DO UPDATE SET
                    name = excluded.name,
                    kind = excluded.kind,
                    capacity_per_day = excluded.capacity_per_day,
                    color = excluded.color,
                    is_active = excluded.is_active,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (resource_id, str(name), kind.value, capacity, color, 1 if active else 0),
            )

    def list_active_resources(self) -> list[Resource]:
        with self.db.connect() as con:
            rows = con.execute(
                """
                SELECT resource_id, name, kind, capacity_per_day, color, is_active
                FROM resource
                WHERE COALESCE(is_active, 1) = 1
                ORDER BY name, resource_id
                """
            ).fetchall()
        return [
            Resource(
                resource_id=str(r["resource_id"]),
                name=str(r["name"]),
                kind=ResourceKind(str(r["kind"] or "person")),
                capacity=coerce_float(r["capacity_per_day"]),
                active=bool(int(r["is_active"] or 0)),
                color=r["color"],
            )
            for r in rows
        ]

    # ---------- Orders ----------

    def upsert_order(self, order: WorkOrder) -> None:
        with self.db.connect() as con:
            con.execute(
                """
                INSERT INTO work_order(
                    order_id, order_number, description, part_no, quantity, status, priority,
                    start_at, end_at, estimated_hours, assigned_resource_id, planned_week_start,
                    version, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(order_id) DO UPDATE SET
                    order_number = excluded.order_number,
                    description = excluded.description,
                    part_no = excluded.part_no,
                    quantity = excluded.quantity,
                    status = excluded.status,
                    priority = excluded.priority,
                    start_at = excluded.start_at,
                    end_at = excluded.end_at,
                    estimated_hours = excluded.estimated_hours,
                    assigned_resource_id = excluded.assigned_resource_id,
                    planned_week_start = excluded.planned_week_start,
                    version = work_order.version + 1,
                    updated_at = excluded.updated_at
                """,
                (
                    order.order_id,
                    order.order_number,
                    order.description,
                    order.part_no,
                    order.quantity,
                    order.status.value,
                    order.priority.value,
                    _iso(order.start),
                    _iso(order.end),
                    order.estimated_hours,
                    order.assigned_resource_id,
                    _iso(order.planned_week_start),
                    order.version,
                    _iso(order.updated_at),
                ),
            )

    def get_order(self, order_id: str) -> WorkOrder | None:
        with self.db.connect() as con:
            row = con.execute(
                f"SELECT {_ORDER_COLUMNS} FROM work_order WHERE order_id = ?",
                (str(order_id),),
            ).fetchone()
        return order_from_row(row) if row is not None else None

    def list_orders(
        self,
        *,
        statuses: Iterable[OrderStatus] | None = None,
        window: tuple[datetime, datetime] | None = None,
    ) -> list[WorkOrder]:
        """Orders matching a status set, ordered by start.

        With `window`, orders ending before the window or starting after it are
        left out; undated orders are kept.
        """
        sql = f"SELECT {_ORDER_COLUMNS} FROM work_order"
        params: list = []
        if statuses is not None:
            values = [OrderStatus(s).value for s in statuses]
            if not values:
                return []
            sql += f" WHERE status IN ({', '.join('?' for _ in values)})"
            params.extend(values)
        sql += " ORDER BY start_at IS NULL, start_at, order_id"
        with self.db.connect() as con:
            rows = con.execute(sql, params).fetchall()

        out = [order_from_row(r) for r in rows]
        if window is None:
            return out
        first, last = window
        return [
            o
            for o in out
            if not ((o.end is not None and o.end < first) or (o.start is not None and o.start > last))
        ]

    def apply_assignment(
        self,
        order_id: str,
        update: AssignmentUpdate,
        *,
        expected_version: int | None = None,
    ) -> int:
        """Write the assignment fields of one order. Returns the new version.

        Raises ConflictError when `expected_version` is given and no longer
        matches, PersistError for a missing order or a database failure.
        """
        sql = """
            UPDATE work_order SET
                assigned_resource_id = ?,
                start_at = ?,
                end_at = ?,
                planned_week_start = ?,
                updated_at = ?,
                version = version + 1
            WHERE order_id = ?
        """
        params: list = [
            update.assigned_resource_id,
            _iso(update.start),
            _iso(update.end),
            _iso(update.planned_week_start),
            _iso(update.updated_at),
            str(order_id),
        ]
        if expected_version is not None:
            sql += " AND version = ?"
            params.append(int(expected_version))
        try:
            with self.db.connect() as con:
                cur = con.execute(sql, params)
                if cur.rowcount == 0:
                    exists = con.execute("SELECT version FROM work_order WHERE order_id = ?", (str(order_id),)).fetchone()
                    if exists is None:
                        raise PersistError(str(order_id), "order not found in store")
                    raise ConflictError(
                        str(order_id),
                        f"stale version (expected {expected_version}, store has {exists['version']})",
                    )
                row = con.execute("SELECT version FROM work_order WHERE order_id = ?", (str(order_id),)).fetchone()
        except sqlite3.Error as ex:
            raise PersistError(str(order_id), str(ex)) from ex
        return int(row["version"])
