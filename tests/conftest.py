from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from boardplan.core.models import OrderStatus, WorkOrder
from boardplan.data.db import Db
from boardplan.data.repository import Repository

WEEK1 = date(2024, 3, 4)
WEEK3 = date(2024, 3, 18)


@pytest.fixture()
def repo(tmp_path) -> Repository:
    db = Db(Path(tmp_path) / "test.db")
    db.ensure_schema()
    return Repository(db)


@pytest.fixture()
def seeded_repo(repo: Repository) -> Repository:
    """Two people and a handful of orders around March 2024."""
    repo.upsert_resource(resource_id="A", name="Anna", capacity=7.4)
    repo.upsert_resource(resource_id="B", name="Ben", capacity=8)
    repo.upsert_resource(resource_id="X", name="Retired lathe", kind="machine", active=False)

    repo.upsert_order(
        WorkOrder(
            order_id="wo-1",
            order_number="WO-1001",
            description="Gearbox housing",
            part_no="GH-77",
            status=OrderStatus.RELEASED,
            start=datetime(2024, 3, 4, 8),
            end=datetime(2024, 3, 5, 10, 36),
            estimated_hours=10,
            assigned_resource_id="A",
            planned_week_start=WEEK1,
        )
    )
    repo.upsert_order(
        WorkOrder(
            order_id="wo-2",
            order_number="WO-1002",
            description="Shaft",
            status=OrderStatus.OPEN,
            start=datetime(2024, 3, 6, 8),
            end=datetime(2024, 3, 6, 12),
            estimated_hours=4,
            assigned_resource_id="B",
            planned_week_start=WEEK1,
        )
    )
    repo.upsert_order(
        WorkOrder(
            order_id="wo-3",
            order_number="WO-1003",
            description="Old bracket",
            status=OrderStatus.DONE,
            start=datetime(2024, 3, 5, 8),
            end=datetime(2024, 3, 5, 12),
            estimated_hours=4,
            assigned_resource_id="A",
            planned_week_start=WEEK1,
        )
    )
    repo.upsert_order(
        WorkOrder(
            order_id="wo-4",
            order_number="WO-1004",
            description="Long ago",
            status=OrderStatus.OPEN,
            start=datetime(2023, 1, 2, 8),
            end=datetime(2023, 1, 3, 8),
            estimated_hours=8,
            assigned_resource_id="B",
        )
    )
    repo.upsert_order(
        WorkOrder(
            order_id="wo-5",
            order_number="WO-1005",
            description="Unplanned cover",
            status=OrderStatus.OPEN,
            quantity=3,
        )
    )
    return repo
