"""
Notification endpoints. Every route is scoped to the caller's own notifications.

GET    /api/v1/notifications                 — List (newest first)
GET    /api/v1/notifications/unread-count    — Unread badge count
PATCH  /api/v1/notifications/{id}/read       — Mark one read
POST   /api/v1/notifications/read-all        — Mark all read
DELETE /api/v1/notifications/{id}            — Delete one
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import notifications as notification_service
from brandhub_shared.schemas.common import SuccessResponse
from brandhub_shared.schemas.notifications import (
    NotificationList,
    NotificationRead,
    UnreadCount,
)

router = APIRouter()


@router.get("", response_model=NotificationList)
async def list_notifications(
    unreadOnly: bool = Query(False),
    limit: int = Query(notification_service.DEFAULT_LIST_LIMIT, ge=1),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    rows, unread = await notification_service.list_notifications(
        auth.user_id, session, unread_only=unreadOnly, limit=limit
    )
    return NotificationList(
        notifications=[notification_service.to_read(n) for n in rows],
        unread_count=unread,
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    return UnreadCount(count=await notification_service.unread_count(auth.user_id, session))


@router.patch("/{notificationId}/read", response_model=NotificationRead)
async def mark_read(
    notificationId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    notification = await notification_service.mark_read(notificationId, auth.user_id, session)
    return notification_service.to_read(notification)


@router.post("/read-all", response_model=SuccessResponse)
async def mark_all_read(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    count = await notification_service.mark_all_read(auth.user_id, session)
    return SuccessResponse(message=f"Marked {count} notifications as read")


@router.delete("/{notificationId}", response_model=SuccessResponse)
async def delete_notification(
    notificationId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await notification_service.delete_notification(notificationId, auth.user_id, session)
    return SuccessResponse(message="Notification deleted")
