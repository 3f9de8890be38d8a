"""Fire-and-forget user notifications.

``notify`` stores an inbox row in its own session and then hands the event to
the real-time publisher. Failures are logged and never propagate, so a
notification problem can never undo work the caller already committed.
"""

from typing import Any, Callable, Optional, Protocol

from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal
from services.communications_service.models import Notification, NotificationCategory
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class NotificationSink(Protocol):
    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        category: NotificationCategory,
        related_entity_id: Optional[str] = None,
        related_entity_type: Optional[str] = None,
    ) -> None: ...


class RealtimePublisher(Protocol):
    async def publish(self, user_id: str, event: dict[str, Any]) -> None: ...


class LogPublisher:
    """Default publisher used when no live-update channel is wired in."""

    async def publish(self, user_id: str, event: dict[str, Any]) -> None:
        logger.debug("Publish to %s: %s", user_id, event.get("type"))


class Notifier:
    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        publisher: Optional[RealtimePublisher] = None,
    ):
        self._session_factory = session_factory or AsyncSessionLocal
        self.publisher = publisher or LogPublisher()

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        category: NotificationCategory,
        related_entity_id: Optional[str] = None,
        related_entity_type: Optional[str] = None,
    ) -> None:
        if not user_id:
            return
        try:
            async with self._session_factory() as db:
                notification = Notification(
                    user_id=user_id,
                    title=title,
                    message=message,
                    category=category,
                    related_entity_id=related_entity_id,
                    related_entity_type=related_entity_type,
                )
                db.add(notification)
                await db.commit()
                notification_id = str(notification.id)

            await self.publisher.publish(
                user_id,
                {
                    "type": "notification",
                    "id": notification_id,
                    "title": title,
                    "message": message,
                    "category": category.value,
                    "related_entity_id": related_entity_id,
                },
            )
        except Exception as e:
            logger.warning(
                "Failed to notify user %s (%s): %s", user_id, category.value, e
            )


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Return the process-wide notifier (FastAPI dependency)."""
    global _notifier
    if _notifier is None:
        _notifier = Notifier()
    return _notifier
