from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime

from boardplan.core.models import BOARD_STATUSES, AssignmentUpdate, OrderStatus, Resource, WorkOrder
from boardplan.data.feed import OrderFeed
from boardplan.data.repository import Repository

logger = logging.getLogger(__name__)


class AssignmentStore:
    """Async access to the assignment fields of orders and to active resources.

    SQLite calls block, so they run in a worker thread and the event loop
    stays responsive while a write is pending.
    """

    def __init__(self, repo: Repository, *, feed: OrderFeed | None = None) -> None:
        self.repo = repo
        self.feed = feed if feed is not None else OrderFeed()

    async def list_active_resources(self) -> list[Resource]:
        return await asyncio.to_thread(self.repo.list_active_resources)

    async def list_orders(
        self,
        statuses: Iterable[OrderStatus] = BOARD_STATUSES,
        *,
        window: tuple[datetime, datetime] | None = None,
    ) -> list[WorkOrder]:
        statuses = tuple(statuses)
        return await asyncio.to_thread(self.repo.list_orders, statuses=statuses, window=window)

    async def update_assignment(
        self,
        order_id: str,
        update: AssignmentUpdate,
        *,
        expected_version: int | None = None,
    ) -> int:
        """Persist one reassignment; returns the order's new version.

        Raises PersistError (or ConflictError) on failure.
        """
        version = await asyncio.to_thread(
            self.repo.apply_assignment,
            order_id,
            update,
            expected_version=expected_version,
        )
        logger.debug("Persisted assignment of %s (version %s)", order_id, version)
        if self.feed.subscriber_count:
            try:
                orders = await self.list_orders()
            except sqlite3.Error:
                # The write is committed; subscribers catch up on their next refresh.
                logger.exception("Could not publish orders after writing %s", order_id)
            else:
                self.feed.publish(orders)
        return version
