"""Notification schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from .common import CamelModel, NotificationType


class NotificationRead(CamelModel):
    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    read: bool
    read_at: Optional[datetime] = None
    brand_id: Optional[uuid.UUID] = None
    conversation_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = None
    created_at: datetime


class NotificationList(CamelModel):
    notifications: list[NotificationRead]
    unread_count: int


class UnreadCount(CamelModel):
    count: int
