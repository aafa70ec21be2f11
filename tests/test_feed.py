from __future__ import annotations

import logging

from boardplan.core.models import WorkOrder
from boardplan.data.feed import OrderFeed


def test_publish_reaches_active_subscribers_only():
    feed = OrderFeed()
    seen_a: list = []
    seen_b: list = []
    sub_a = feed.subscribe(seen_a.append)
    feed.subscribe(seen_b.append)
    assert feed.subscriber_count == 2

    feed.publish([WorkOrder(order_id="1", order_number="N1")])
    sub_a.unsubscribe()
    sub_a.unsubscribe()
    feed.publish([])

    assert len(seen_a) == 1
    assert seen_a[0][0].order_id == "1"
    assert len(seen_b) == 2
    assert feed.subscriber_count == 1
    assert not sub_a.active


def test_subscription_as_context_manager():
    feed = OrderFeed()
    with feed.subscribe(lambda orders: None) as sub:
        assert feed.subscriber_count == 1
    assert not sub.active
    assert feed.subscriber_count == 0


def test_failing_subscriber_does_not_block_others(caplog):
    feed = OrderFeed()
    seen: list = []

    def broken(orders):
        raise RuntimeError("boom")

    feed.subscribe(broken)
    feed.subscribe(seen.append)
    with caplog.at_level(logging.ERROR, logger="boardplan.data.feed"):
        feed.publish([])
    assert seen == [()]
    assert "subscriber failed" in caplog.text
