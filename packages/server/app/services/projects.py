"""
Project sharing: the project-level counterpart of conversation shares.
An accepted project share exposes the project and its live conversations.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import BackgroundTasks, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.conversation import Conversation
from app.models.project import Project, ProjectShare
from app.models.user import User
from app.services.notifications import create_notification, schedule_push
from brandhub_shared.schemas.common import NotificationType, ShareStatus
from brandhub_shared.schemas.sharing import (
    ProjectShareCreate,
    ProjectShareCreateResponse,
    ProjectShareItem,
    ShareRespondResponse,
)

log = structlog.get_logger()


def to_item(share: ProjectShare, project: Optional[Project] = None) -> ProjectShareItem:
    return ProjectShareItem(
        id=share.id,
        project_id=share.project_id,
        project_name=project.name if project else None,
        shared_by=share.shared_by,
        shared_with=share.shared_with,
        status=share.status,
        message=share.message,
        created_at=share.created_at,
        accepted_at=share.accepted_at,
    )


async def create_project_shares(
    caller: User,
    body: ProjectShareCreate,
    session: AsyncSession,
    background_tasks: BackgroundTasks | None = None,
) -> ProjectShareCreateResponse:
    target_ids: list[uuid.UUID] = list(dict.fromkeys(body.user_ids))
    if body.email:
        result = await session.execute(
            select(User).where(User.email == body.email.strip().lower())
        )
        found = result.scalar_one_or_none()
        if not found:
            raise HTTPException(status_code=404, detail="User not found")
        if found.id == caller.id:
            raise HTTPException(status_code=400, detail="Cannot share with yourself")
        target_ids = [found.id]

    if body.project_id is None or not target_ids:
        raise HTTPException(
            status_code=400, detail="projectId and either userIds or email are required"
        )

    project = await session.get(Project, body.project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.user_id != caller.id:
        raise HTTPException(status_code=403, detail="You do not own this project")

    result = await session.execute(
        select(ProjectShare.shared_with).where(
            ProjectShare.project_id == project.id,
            ProjectShare.shared_with.in_(target_ids),
        )
    )
    already_shared = set(result.scalars().all())
    candidates = [uid for uid in target_ids if uid not in already_shared and uid != caller.id]
    known = await session.execute(select(User.id).where(User.id.in_(candidates)))
    known_ids = set(known.scalars().all())
    new_ids = [uid for uid in candidates if uid in known_ids]

    if not new_ids:
        return ProjectShareCreateResponse(
            shares_created=0,
            project_name=project.name,
            message="Project already shared with all specified users",
        )

    notifications = []
    for recipient_id in new_ids:
        share = ProjectShare(
            project_id=project.id,
            brand_id=project.brand_id,
            shared_by=caller.id,
            shared_with=recipient_id,
            status=ShareStatus.PENDING.value,
            message=body.message or None,
        )
        session.add(share)
        await session.flush()
        notifications.append(
            await create_notification(
                session,
                user_id=recipient_id,
                brand_id=project.brand_id,
                type=NotificationType.PROJECT_SHARED.value,
                title="Project shared with you",
                message=f'{caller.display_name} shared the project "{project.name}" with you',
                metadata={"note": body.message},
                project_id=project.id,
                share_id=share.id,
                actor_id=caller.id,
            )
        )
    schedule_push(background_tasks, notifications)

    log.info(
        "project.shared",
        project_id=str(project.id),
        shared_by=str(caller.id),
        recipients=len(new_ids),
    )
    return ProjectShareCreateResponse(shares_created=len(new_ids), project_name=project.name)


async def list_project_shares(
    caller: User,
    session: AsyncSession,
    *,
    project_id: Optional[uuid.UUID] = None,
    my_shares: bool = False,
) -> list[ProjectShareItem]:
    if my_shares:
        result = await session.execute(
            select(ProjectShare, Project)
            .join(Project, Project.id == ProjectShare.project_id)
            .where(ProjectShare.shared_with == caller.id)
            .order_by(ProjectShare.created_at.desc())
        )
        return [to_item(share, project) for share, project in result.all()]

    if project_id is None:
        raise HTTPException(status_code=400, detail="projectId or myShares=true is required")

    project = await session.get(Project, project_id)
    if project is None or project.user_id != caller.id:
        raise HTTPException(status_code=404, detail="Project not found")

    result = await session.execute(
        select(ProjectShare)
        .where(ProjectShare.project_id == project_id)
        .order_by(ProjectShare.created_at.desc())
    )
    return [to_item(share, project) for share in result.scalars().all()]


async def respond_to_project_share(
    caller: User,
    share_id: Optional[uuid.UUID],
    action: Optional[str],
    session: AsyncSession,
    background_tasks: BackgroundTasks | None = None,
) -> ShareRespondResponse:
    if share_id is None or action not in ("accept", "decline"):
        raise HTTPException(
            status_code=400, detail="shareId and action (accept/decline) are required"
        )

    share = await session.get(ProjectShare, share_id)
    if share is None or share.shared_with != caller.id:
        raise HTTPException(status_code=404, detail="Share not found")

    new_status = ShareStatus.ACCEPTED.value if action == "accept" else ShareStatus.DECLINED.value
    if share.status == new_status:
        return ShareRespondResponse(status=share.status, project_id=share.project_id)

    now = utcnow()
    share.status = new_status
    if action == "accept":
        share.accepted_at = now
    else:
        share.declined_at = now
    session.add(share)
    await session.flush()

    project = await session.get(Project, share.project_id)
    verb = "accepted" if action == "accept" else "declined"
    notification = await create_notification(
        session,
        user_id=share.shared_by,
        brand_id=share.brand_id,
        type=(
            NotificationType.SHARE_ACCEPTED.value
            if action == "accept"
            else NotificationType.SHARE_DECLINED.value
        ),
        title=f"Share {verb}",
        message=f'{caller.display_name} {verb} your invitation to "{project.name if project else "a project"}"',
        project_id=share.project_id,
        share_id=share.id,
        actor_id=caller.id,
    )
    schedule_push(background_tasks, [notification])

    log.info("project.share_responded", share_id=str(share.id), status=new_status)
    return ShareRespondResponse(status=share.status, project_id=share.project_id)


async def revoke_project_share(
    caller: User, share_id: Optional[uuid.UUID], session: AsyncSession
) -> None:
    if share_id is None:
        raise HTTPException(status_code=400, detail="shareId is required")
    share = await session.get(ProjectShare, share_id)
    if share is None or share.shared_by != caller.id:
        raise HTTPException(status_code=404, detail="Share not found")
    await session.delete(share)
    await session.flush()
    log.info("project.share_revoked", share_id=str(share_id))


async def list_shared_projects(
    caller: User, session: AsyncSession
) -> tuple[list[Project], list[Conversation]]:
    """Projects shared with the caller (accepted) and their non-archived conversations."""
    result = await session.execute(
        select(Project)
        .join(ProjectShare, ProjectShare.project_id == Project.id)
        .where(
            ProjectShare.shared_with == caller.id,
            ProjectShare.status == ShareStatus.ACCEPTED.value,
        )
        .order_by(Project.created_at.desc())
    )
    projects = list(result.scalars().all())
    if not projects:
        return [], []

    result = await session.execute(
        select(Conversation)
        .where(
            Conversation.project_id.in_([p.id for p in projects]),
            Conversation.archived == False,  # noqa: E712
        )
        .order_by(Conversation.last_message_at.desc().nulls_last(), Conversation.created_at.desc())
    )
    return projects, list(result.scalars().all())
