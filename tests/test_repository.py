from __future__ import annotations

import sqlite3
from datetime import date, datetime

import pytest

from boardplan.core.calendar import WeekPolicy
from boardplan.core.errors import ConflictError, PersistError
from boardplan.core.models import BOARD_STATUSES, AssignmentUpdate, OrderStatus, ResourceKind, WorkOrder


def _update(resource: str | None = "B") -> AssignmentUpdate:
    return AssignmentUpdate(
        assigned_resource_id=resource,
        start=datetime(2024, 3, 18, 8),
        end=datetime(2024, 3, 19, 10, 36),
        planned_week_start=date(2024, 3, 18),
        updated_at=datetime(2024, 3, 1, 12),
    )


def test_config_round_trip_and_audit(repo):
    assert repo.get_config(key="hours_per_day") is None
    assert repo.get_config(key="hours_per_day", default="7.4") == "7.4"

    repo.set_config(key="hours_per_day", value="8")
    repo.set_config(key="hours_per_day", value="7,5")
    assert repo.get_config(key="hours_per_day") == "7,5"

    entries = repo.get_recent_audit_entries()
    assert [e.category for e in entries] == ["CONFIG", "CONFIG"]
    assert entries[0].details == "From '8' to '7,5'"


def test_config_rejects_empty_key(repo):
    with pytest.raises(ValueError):
        repo.get_config(key="  ")
    with pytest.raises(ValueError):
        repo.set_config(key="", value="x")


def test_scheduling_config_defaults(repo):
    cfg = repo.get_scheduling_config()
    assert cfg.hours_per_day == 7.4
    assert cfg.default_weekly_capacity == 37
    assert cfg.workday_start_hour == 8
    assert cfg.weeks_to_show == 8
    assert cfg.week_policy is WeekPolicy.FULL_WEEK
    assert cfg.assignment_conflict_check is False


def test_scheduling_config_from_app_config(repo):
    repo.set_config(key="hours_per_day", value="7,5")
    repo.set_config(key="weeks_to_show", value="4")
    repo.set_config(key="week_policy", value="WorkWeek")
    repo.set_config(key="assignment_conflict_check", value="true")
    cfg = repo.get_scheduling_config()
    assert cfg.hours_per_day == 7.5
    assert cfg.weeks_to_show == 4
    assert cfg.week_policy is WeekPolicy.WORKWEEK
    assert cfg.assignment_conflict_check is True


def test_invalid_week_policy_falls_back(repo):
    repo.set_config(key="week_policy", value="sometimes")
    assert repo.get_scheduling_config().week_policy is WeekPolicy.FULL_WEEK


def test_list_active_resources_skips_inactive_and_sorts_by_name(seeded_repo):
    resources = seeded_repo.list_active_resources()
    assert [r.resource_id for r in resources] == ["A", "B"]
    assert resources[0].capacity == 7.4
    assert resources[1].kind is ResourceKind.PERSON


def test_list_orders_filters_by_status(seeded_repo):
    ids = [o.order_id for o in seeded_repo.list_orders(statuses=BOARD_STATUSES)]
    assert "wo-3" not in ids
    assert set(ids) == {"wo-1", "wo-2", "wo-4", "wo-5"}
    assert seeded_repo.list_orders(statuses=[]) == []


def test_list_orders_window_keeps_undated(seeded_repo):
    window = (datetime(2024, 2, 26), datetime(2024, 4, 28, 23, 59))
    ids = {o.order_id for o in seeded_repo.list_orders(statuses=BOARD_STATUSES, window=window)}
    assert ids == {"wo-1", "wo-2", "wo-5"}


def test_order_round_trip(seeded_repo):
    order = seeded_repo.get_order("wo-1")
    assert order is not None
    assert order.status is OrderStatus.RELEASED
    assert order.start == datetime(2024, 3, 4, 8)
    assert order.planned_week_start == date(2024, 3, 4)
    assert order.version == 0
    assert seeded_repo.get_order("nope") is None


def test_apply_assignment_bumps_version(seeded_repo):
    version = seeded_repo.apply_assignment("wo-1", _update())
    assert version == 1

    order = seeded_repo.get_order("wo-1")
    assert order.assigned_resource_id == "B"
    assert order.start == datetime(2024, 3, 18, 8)
    assert order.end == datetime(2024, 3, 19, 10, 36)
    assert order.planned_week_start == date(2024, 3, 18)
    # Fields outside the assignment are untouched.
    assert order.estimated_hours == 10
    assert order.description == "Gearbox housing"


def test_apply_assignment_can_unassign(seeded_repo):
    seeded_repo.apply_assignment("wo-2", _update(None))
    assert seeded_repo.get_order("wo-2").assigned_resource_id is None


def test_apply_assignment_missing_order(seeded_repo):
    with pytest.raises(PersistError) as exc:
        seeded_repo.apply_assignment("missing", _update())
    assert exc.value.order_id == "missing"
    assert not isinstance(exc.value, ConflictError)


def test_apply_assignment_stale_version_conflicts(seeded_repo):
    seeded_repo.apply_assignment("wo-1", _update(), expected_version=0)
    with pytest.raises(ConflictError):
        seeded_repo.apply_assignment("wo-1", _update("A"), expected_version=0)
    assert seeded_repo.get_order("wo-1").assigned_resource_id == "B"


def test_non_positive_hours_in_config_fall_back(repo):
    repo.set_config(key="hours_per_day", value="-3")
    repo.set_config(key="default_weekly_capacity", value="0")
    cfg = repo.get_scheduling_config()
    assert cfg.hours_per_day == 7.4
    assert cfg.default_weekly_capacity == 37


def test_assigned_resource_must_exist(seeded_repo):
    with pytest.raises(PersistError):
        seeded_repo.apply_assignment("wo-1", _update("ghost"))
    assert seeded_repo.get_order("wo-1").assigned_resource_id == "A"

    with pytest.raises(sqlite3.IntegrityError):
        seeded_repo.upsert_order(WorkOrder(order_id="wo-9", order_number="WO-9", assigned_resource_id="ghost"))
