"""Unit tests for the notifier: inbox rows, publishing, failure isolation."""

import pytest
from services.communications_service.models import Notification, NotificationCategory
from services.communications_service.services.notifier import Notifier
from sqlalchemy import select


class CapturingPublisher:
    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    async def publish(self, user_id, event):
        if self.fail:
            raise ConnectionError("realtime channel down")
        self.events.append((user_id, event))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notify_stores_inbox_row_and_publishes(db_session, session_factory):
    publisher = CapturingPublisher()
    notifier = Notifier(session_factory=session_factory, publisher=publisher)

    await notifier.notify(
        "consumer-1",
        "Order placed",
        "Your pickup code is ABC123.",
        NotificationCategory.ORDER_UPDATE,
        related_entity_id="order-1",
        related_entity_type="order",
    )

    result = await db_session.execute(
        select(Notification).where(Notification.user_id == "consumer-1")
    )
    stored = result.scalars().all()
    assert len(stored) == 1
    assert stored[0].is_read is False
    assert stored[0].category == NotificationCategory.ORDER_UPDATE

    user_id, event = publisher.events[0]
    assert user_id == "consumer-1"
    assert event["type"] == "notification"
    assert event["id"] == str(stored[0].id)
    assert event["category"] == "order_update"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notify_skips_missing_recipient(db_session, session_factory):
    publisher = CapturingPublisher()
    notifier = Notifier(session_factory=session_factory, publisher=publisher)

    await notifier.notify(None, "Order placed", "x", NotificationCategory.SYSTEM)
    await notifier.notify("", "Order placed", "x", NotificationCategory.SYSTEM)

    assert publisher.events == []
    assert (await db_session.execute(select(Notification))).scalars().all() == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_publisher_failure_is_swallowed(db_session, session_factory):
    notifier = Notifier(
        session_factory=session_factory, publisher=CapturingPublisher(fail=True)
    )

    await notifier.notify(
        "consumer-1", "Payment confirmed", "ok", NotificationCategory.PAYMENT
    )

    stored = (await db_session.execute(select(Notification))).scalars().all()
    assert len(stored) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_storage_failure_is_swallowed():
    def broken_factory():
        raise RuntimeError("database unavailable")

    publisher = CapturingPublisher()
    notifier = Notifier(session_factory=broken_factory, publisher=publisher)

    await notifier.notify("consumer-1", "Order update", "x", NotificationCategory.SYSTEM)

    assert publisher.events == []
