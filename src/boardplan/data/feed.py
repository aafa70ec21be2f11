"""Push-based order snapshots.

Subscribers receive the full list of orders after every change the store
publishes. Subscriptions are explicit handles; dropping a board must call
`unsubscribe()` (or use the subscription as a context manager).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from boardplan.core.models import WorkOrder

logger = logging.getLogger(__name__)

SnapshotHandler = Callable[[Sequence[WorkOrder]], None]


class Subscription:
    def __init__(self, feed: "OrderFeed", handler: SnapshotHandler) -> None:
        self._feed = feed
        self._handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._feed._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()


class OrderFeed:
    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(self, handler: SnapshotHandler) -> Subscription:
        sub = Subscription(self, handler)
        self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, orders: Sequence[WorkOrder]) -> None:
        snapshot = tuple(orders)
        for sub in list(self._subscriptions):
            if not sub.active:
                continue
            try:
                sub._handler(snapshot)
            except Exception:
                # One broken subscriber must not starve the others.
                logger.exception("Order feed subscriber failed")
