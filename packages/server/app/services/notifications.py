"""
Notification service: in-app notification rows plus realtime fan-out.

Rows are written in the caller's transaction; realtime pushes are scheduled
as background tasks so they only run once the response (and commit) is done.
"""

from __future__ import annotations

import uuid
from typing import Any, Iterable, Optional

import structlog
from fastapi import BackgroundTasks, HTTPException
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.realtime import push_event
from app.models.base import utcnow
from app.models.notification import Notification
from brandhub_shared.schemas.notifications import NotificationRead

log = structlog.get_logger()

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200


def to_read(notification: Notification) -> NotificationRead:
    return NotificationRead(
        id=notification.id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        metadata=notification.meta or {},
        read=notification.read,
        read_at=notification.read_at,
        brand_id=notification.brand_id,
        conversation_id=notification.conversation_id,
        project_id=notification.project_id,
        actor_id=notification.actor_id,
        created_at=notification.created_at,
    )


async def create_notification(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    type: str,
    title: str,
    message: str,
    brand_id: Optional[uuid.UUID] = None,
    metadata: Optional[dict[str, Any]] = None,
    conversation_id: Optional[uuid.UUID] = None,
    project_id: Optional[uuid.UUID] = None,
    share_id: Optional[uuid.UUID] = None,
    actor_id: Optional[uuid.UUID] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        brand_id=brand_id,
        type=type,
        title=title,
        message=message,
        meta=metadata or {},
        conversation_id=conversation_id,
        project_id=project_id,
        share_id=share_id,
        actor_id=actor_id,
    )
    session.add(notification)
    await session.flush()
    log.info(
        "notification.created",
        notification_id=str(notification.id),
        user_id=str(user_id),
        type=type,
    )
    return notification


def schedule_push(
    background_tasks: BackgroundTasks | None,
    notifications: Iterable[Notification],
) -> None:
    """Queue realtime delivery of freshly created notifications."""
    if background_tasks is None:
        return
    for n in notifications:
        background_tasks.add_task(
            push_event,
            n.user_id,
            "notification",
            to_read(n).model_dump(mode="json", by_alias=True),
        )


async def list_notifications(
    user_id: uuid.UUID,
    session: AsyncSession,
    *,
    unread_only: bool = False,
    limit: int = DEFAULT_LIST_LIMIT,
) -> tuple[list[Notification], int]:
    """Newest first, plus the caller's total unread count."""
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.read == False)  # noqa: E712
    query = query.order_by(Notification.created_at.desc()).limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all()), await unread_count(user_id, session)


async def unread_count(user_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
    )
    return result.scalar_one()


async def _get_own(
    notification_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Notification:
    notification = await session.get(Notification, notification_id)
    # Other users' notifications are indistinguishable from missing ones.
    if not notification or notification.user_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


async def mark_read(
    notification_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Notification:
    notification = await _get_own(notification_id, user_id, session)
    if not notification.read:
        notification.read = True
        notification.read_at = utcnow()
        session.add(notification)
        await session.flush()
    return notification


async def mark_all_read(user_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
        .values(read=True, read_at=utcnow())
    )
    log.info("notification.read_all", user_id=str(user_id), count=result.rowcount)
    return result.rowcount or 0


async def delete_notification(
    notification_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> None:
    notification = await _get_own(notification_id, user_id, session)
    await session.delete(notification)
    await session.flush()
