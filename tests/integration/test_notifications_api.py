"""Integration tests for the notification inbox."""

import pytest
from services.communications_service.models import Notification, NotificationCategory


def _notification(user_id, title="Order update", **overrides):
    values = {
        "user_id": user_id,
        "title": title,
        "message": "Your order is ready.",
        "category": NotificationCategory.ORDER_UPDATE,
    }
    values.update(overrides)
    return Notification(**values)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_inbox_lists_only_my_notifications(notifications_client, db_session):
    db_session.add_all(
        [
            _notification("consumer-1", "First"),
            _notification("consumer-1", "Second", is_read=True),
            _notification("someone-else", "Not mine"),
        ]
    )
    await db_session.commit()

    response = await notifications_client.get("/notifications")

    assert response.status_code == 200
    data = response.json()
    assert {item["title"] for item in data["items"]} == {"First", "Second"}
    assert data["unread_count"] == 1

    unread = await notifications_client.get(
        "/notifications", params={"unread_only": "true"}
    )
    assert [item["title"] for item in unread.json()["items"]] == ["First"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mark_read(notifications_client, db_session):
    mine = _notification("consumer-1")
    other = _notification("someone-else")
    db_session.add_all([mine, other])
    await db_session.commit()

    response = await notifications_client.post(f"/notifications/{mine.id}/read")
    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert response.json()["read_at"] is not None

    forbidden = await notifications_client.post(f"/notifications/{other.id}/read")
    assert forbidden.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mark_all_read(notifications_client, db_session):
    db_session.add_all([_notification("consumer-1") for _ in range(3)])
    await db_session.commit()

    response = await notifications_client.post("/notifications/read-all")

    assert response.json() == {"updated": 3}
    inbox = (await notifications_client.get("/notifications")).json()
    assert inbox["unread_count"] == 0
