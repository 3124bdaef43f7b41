"""
Brand membership service: listing, inviting, re-roling and removing members.

Precondition checks run in a fixed order and the first failure wins, so a
caller always learns about the most fundamental problem first.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import BackgroundTasks, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import AuthenticatedUser, resolve_caller_membership
from app.core.email import send_role_change_email, send_team_invite_email
from app.core.errors import SOLE_OWNER, ApiError
from app.core.permissions import USERS_INVITE, get_role_display_name, has_permission, is_valid_role
from app.models.brand import Brand
from app.models.brand_user import BrandUser
from app.models.user import User
from app.services.notifications import create_notification, schedule_push
from brandhub_shared.schemas.common import NotificationType, Role
from brandhub_shared.schemas.members import MemberResponse

log = structlog.get_logger()

MEMBER_MANAGER_ROLES = (Role.OWNER.value, Role.ADMIN.value)


async def list_members(brand_id: uuid.UUID, session: AsyncSession) -> list[MemberResponse]:
    """All members of a brand, in the order they joined."""
    result = await session.execute(
        select(User, BrandUser)
        .join(BrandUser, BrandUser.user_id == User.id)
        .where(BrandUser.brand_id == brand_id)
        .order_by(BrandUser.created_at)
    )
    members = [
        MemberResponse(
            user_id=user.id,
            email=user.email,
            name=user.display_name,
            role=bu.role,
            role_display_name=get_role_display_name(bu.role),
            joined_at=bu.created_at,
        )
        for user, bu in result.all()
    ]
    return members


async def _caller_membership(
    auth: AuthenticatedUser,
    session: AsyncSession,
    brand_id: Optional[uuid.UUID],
) -> BrandUser:
    membership = await resolve_caller_membership(auth.user_id, session, brand_id)
    if not membership:
        raise HTTPException(status_code=400, detail="You are not part of any team")
    return membership


async def _target_membership(
    member_id: uuid.UUID,
    brand_id: uuid.UUID,
    session: AsyncSession,
    *,
    for_update: bool = False,
) -> BrandUser:
    # Any membership for the member tells "unknown user" apart from "other team".
    query = select(BrandUser).where(BrandUser.user_id == member_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    memberships = result.scalars().all()
    if not memberships:
        raise HTTPException(status_code=404, detail="Member not found")
    for membership in memberships:
        if membership.brand_id == brand_id:
            return membership
    raise HTTPException(status_code=403, detail="Member not in your team")


async def _count_owners_locked(brand_id: uuid.UUID, session: AsyncSession) -> int:
    """Count owners with their rows locked until the transaction ends."""
    result = await session.execute(
        select(BrandUser.user_id)
        .where(BrandUser.brand_id == brand_id, BrandUser.role == Role.OWNER.value)
        .with_for_update()
    )
    return len(result.all())


async def invite_member(
    auth: AuthenticatedUser,
    email: Optional[str],
    session: AsyncSession,
    *,
    brand_id: Optional[uuid.UUID] = None,
    background_tasks: BackgroundTasks | None = None,
) -> bool:
    """Add an existing user to the caller's brand, or email an unknown address.

    Returns True when the invitee has no account yet and must sign up first.
    """
    email = (email or "").strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    caller = await _caller_membership(auth, session, brand_id)
    if not has_permission(caller.role, USERS_INVITE):
        raise HTTPException(status_code=403, detail="Only admins can invite team members")

    brand = await session.get(Brand, caller.brand_id)
    brand_name = brand.name if brand else "your team"

    result = await session.execute(select(User).where(User.email == email))
    invitee = result.scalar_one_or_none()

    if invitee is None:
        if background_tasks is not None:
            background_tasks.add_task(
                send_team_invite_email,
                email,
                auth.display_name,
                brand_name,
                str(caller.brand_id),
                True,
            )
        log.info("member.invited", brand_id=str(caller.brand_id), invited_by=str(auth.user_id))
        return True

    if await session.get(BrandUser, (invitee.id, caller.brand_id)):
        raise HTTPException(status_code=400, detail="User is already a team member")

    session.add(BrandUser(user_id=invitee.id, brand_id=caller.brand_id, role=Role.USER.value))
    await session.flush()

    notification = await create_notification(
        session,
        user_id=invitee.id,
        brand_id=caller.brand_id,
        type=NotificationType.TEAM_INVITE.value,
        title="You were added to a team",
        message=f"{auth.display_name} added you to {brand_name}.",
        metadata={"role": Role.USER.value},
        actor_id=auth.user_id,
    )
    schedule_push(background_tasks, [notification])

    if background_tasks is not None:
        background_tasks.add_task(
            send_team_invite_email,
            invitee.email,
            auth.display_name,
            brand_name,
            str(caller.brand_id),
            False,
        )

    log.info(
        "member.added",
        brand_id=str(caller.brand_id),
        member_id=str(invitee.id),
        invited_by=str(auth.user_id),
    )
    return False


async def change_member_role(
    auth: AuthenticatedUser,
    member_id: Optional[uuid.UUID],
    new_role: Optional[str],
    session: AsyncSession,
    *,
    brand_id: Optional[uuid.UUID] = None,
    background_tasks: BackgroundTasks | None = None,
) -> None:
    """Owner-only role change with sole-owner protection.

    Writes a role_change notification in the same transaction; the realtime
    push and the email are scheduled for after the response.
    """
    if member_id is None or not new_role:
        raise HTTPException(status_code=400, detail="Member ID and new role are required")
    if not is_valid_role(new_role):
        raise HTTPException(status_code=400, detail="Invalid role")

    caller = await _caller_membership(auth, session, brand_id)
    if caller.role != Role.OWNER.value:
        raise HTTPException(status_code=403, detail="Only owners can change member roles")

    target = await _target_membership(member_id, caller.brand_id, session, for_update=True)
    old_role = target.role
    if old_role == new_role:
        return

    if old_role == Role.OWNER.value and new_role != Role.OWNER.value:
        owners = await _count_owners_locked(caller.brand_id, session)
        if owners <= 1:
            raise ApiError(
                status_code=400,
                code=SOLE_OWNER,
                message="Cannot demote the only owner",
                details={"brand_id": str(caller.brand_id), "owner_count": owners},
            )

    target.role = new_role
    session.add(target)
    await session.flush()

    log.info(
        "member.role_changed",
        brand_id=str(caller.brand_id),
        member_id=str(member_id),
        changed_by=str(auth.user_id),
        old_role=old_role,
        new_role=new_role,
    )

    old_display = get_role_display_name(old_role)
    new_display = get_role_display_name(new_role)
    notification = await create_notification(
        session,
        user_id=member_id,
        brand_id=caller.brand_id,
        type=NotificationType.ROLE_CHANGE.value,
        title="Your role has been updated",
        message=f"{auth.display_name} changed your role from {old_display} to {new_display}.",
        metadata={"old_role": old_role, "new_role": new_role},
        actor_id=auth.user_id,
    )
    schedule_push(background_tasks, [notification])

    if background_tasks is not None:
        member = await session.get(User, member_id)
        brand = await session.get(Brand, caller.brand_id)
        if member and member.email:
            background_tasks.add_task(
                send_role_change_email,
                member.email,
                member.display_name,
                auth.display_name,
                old_role,
                new_role,
                brand.name if brand else "your team",
            )


async def remove_member(
    auth: AuthenticatedUser,
    member_id: Optional[uuid.UUID],
    session: AsyncSession,
    *,
    brand_id: Optional[uuid.UUID] = None,
    background_tasks: BackgroundTasks | None = None,
) -> None:
    if member_id is None:
        raise HTTPException(status_code=400, detail="Member ID is required")

    caller = await _caller_membership(auth, session, brand_id)
    if caller.role not in MEMBER_MANAGER_ROLES:
        raise HTTPException(
            status_code=403, detail="Only owners and admins can remove members"
        )

    target = await _target_membership(member_id, caller.brand_id, session, for_update=True)

    if caller.role == Role.ADMIN.value and target.role == Role.OWNER.value:
        raise HTTPException(status_code=403, detail="Admins cannot remove owners")

    if member_id == auth.user_id:
        raise HTTPException(status_code=400, detail="Cannot remove yourself from the team")

    await session.delete(target)
    await session.flush()

    brand = await session.get(Brand, caller.brand_id)
    notification = await create_notification(
        session,
        user_id=member_id,
        brand_id=caller.brand_id,
        type=NotificationType.TEAM_REMOVED.value,
        title="You were removed from a team",
        message=f"{auth.display_name} removed you from {brand.name if brand else 'the team'}.",
        actor_id=auth.user_id,
    )
    schedule_push(background_tasks, [notification])

    log.info(
        "member.removed",
        brand_id=str(caller.brand_id),
        member_id=str(member_id),
        removed_by=str(auth.user_id),
    )
