"""Notification schemas."""

import datetime as dt
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Notification severity shown by the client."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationResponse(BaseModel):
    """Notification record."""

    id: UUID
    user_id: UUID
    title: str
    message: str
    type: NotificationType
    link: str | None = None
    read: bool
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Latest notifications with the unread count."""

    items: list[NotificationResponse]
    unread_count: int = Field(..., ge=0)


class UnreadCountResponse(BaseModel):
    unread_count: int
