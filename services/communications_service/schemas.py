import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from services.communications_service.models import NotificationCategory


class NotificationResponse(BaseModel):
    id: uuid.UUID
    title: str
    message: str
    category: NotificationCategory
    related_entity_id: Optional[str] = None
    related_entity_type: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int
