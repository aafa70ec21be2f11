from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

import pytest

from boardplan.core.models import WorkOrder
from boardplan.scheduling.transaction import (
    DragMessage,
    PendingTransaction,
    TxState,
    WorkingSet,
    cell_id,
    parse_cell_id,
    resolve_drop,
)

WEEK1 = date(2024, 3, 4)


def _orders() -> list[WorkOrder]:
    return [
        WorkOrder(order_id="a", order_number="A", assigned_resource_id="r1", start=datetime(2024, 3, 4, 8), planned_week_start=WEEK1),
        WorkOrder(order_id="b", order_number="B", assigned_resource_id="r2", start=datetime(2024, 3, 11, 8), planned_week_start=date(2024, 3, 11)),
    ]


def test_cell_id_round_trip_and_unassigned():
    assert cell_id("r1", WEEK1) == "r1|2024-03-04"
    assert parse_cell_id("r1|2024-03-04") == ("r1", WEEK1)
    assert parse_cell_id(cell_id(None, WEEK1)) == (None, WEEK1)


@pytest.mark.parametrize("bad", ["r1", "|2024-03-04", "r1|", ""])
def test_parse_cell_id_rejects_malformed(bad):
    with pytest.raises(ValueError):
        parse_cell_id(bad)


def test_resolve_drop_on_cell():
    msg = resolve_drop("a", "r2|2024-03-18", _orders())
    assert msg == DragMessage("a", "r2", date(2024, 3, 18))


def test_resolve_drop_on_another_card_uses_that_cell():
    msg = resolve_drop("a", "b", _orders())
    assert msg == DragMessage("a", "r2", date(2024, 3, 11))


def test_resolve_drop_unknown_target():
    assert resolve_drop("a", "zzz", _orders()) is None
    assert resolve_drop("a", "r1|not-a-date", _orders()) is None


def test_apply_then_rollback_restores_snapshot_exactly():
    working = WorkingSet(_orders())
    before = working.orders
    moved = replace(working.find("a"), assigned_resource_id="r2", planned_week_start=date(2024, 3, 18))

    tx = PendingTransaction(working, moved)
    tx.apply()
    assert tx.state is TxState.APPLIED
    assert working.find("a").assigned_resource_id == "r2"

    tx.rollback()
    assert tx.state is TxState.ROLLED_BACK
    assert working.orders == before
    assert tx.snapshot is None


def test_commit_keeps_change_and_records_version():
    working = WorkingSet(_orders())
    moved = replace(working.find("a"), assigned_resource_id="r2")
    tx = PendingTransaction(working, moved)
    tx.apply()
    tx.commit(version=5)

    assert tx.state is TxState.PERSISTED
    assert working.find("a").assigned_resource_id == "r2"
    assert working.find("a").version == 5
    assert working.find("b") == _orders()[1]


def test_invalid_transitions_raise():
    working = WorkingSet(_orders())
    tx = PendingTransaction(working, working.find("a"))
    with pytest.raises(RuntimeError):
        tx.commit()
    with pytest.raises(RuntimeError):
        tx.rollback()
    tx.apply()
    with pytest.raises(RuntimeError):
        tx.apply()
    tx.commit()
    with pytest.raises(RuntimeError):
        tx.rollback()
