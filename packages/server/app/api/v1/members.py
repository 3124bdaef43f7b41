"""
Brand membership endpoints.

GET    /api/v1/brand-members?brandId=        — List brand members
POST   /api/v1/brand-members/invite          — Invite by email (owners & admins)
PATCH  /api/v1/brand-members/role            — Change a member's role (owners only)
DELETE /api/v1/brand-members/role?memberId=  — Remove a member (owners & admins)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    AuthenticatedUser,
    BrandContext,
    get_authenticated_user,
    require_brand_member,
)
from app.core.database import get_session
from app.services import members as member_service
from brandhub_shared.schemas.common import SuccessResponse
from brandhub_shared.schemas.members import (
    MemberListResponse,
    RoleChangeRequest,
    TeamInviteRequest,
    TeamInviteResponse,
)

router = APIRouter()


@router.get("", response_model=MemberListResponse)
async def list_members(
    ctx: BrandContext = Depends(require_brand_member),
    session: AsyncSession = Depends(get_session),
):
    """List all members of the brand."""
    members = await member_service.list_members(ctx.brand_id, session)
    return MemberListResponse(brand_id=ctx.brand_id, data=members)


@router.post("/invite", response_model=TeamInviteResponse)
async def invite_member(
    body: TeamInviteRequest,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Add a user to the caller's brand, or email a sign-up invitation."""
    needs_signup = await member_service.invite_member(
        auth,
        body.email,
        session,
        brand_id=body.brand_id,
        background_tasks=background_tasks,
    )
    if needs_signup:
        return TeamInviteResponse(
            message="Invitation email sent. They will need to sign up first.",
            needs_signup=True,
        )
    return TeamInviteResponse(message="User added to team successfully")


@router.patch("/role", response_model=SuccessResponse)
async def change_role(
    body: RoleChangeRequest,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Change a member's role. Notifies the member in-app and by email."""
    await member_service.change_member_role(
        auth,
        body.member_id,
        body.new_role,
        session,
        brand_id=body.brand_id,
        background_tasks=background_tasks,
    )
    return SuccessResponse(message="Role updated successfully")


@router.delete("/role", response_model=SuccessResponse)
async def remove_member(
    background_tasks: BackgroundTasks,
    memberId: Optional[uuid.UUID] = Query(None),
    brandId: Optional[uuid.UUID] = Query(None),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Remove a member from the caller's brand."""
    await member_service.remove_member(
        auth,
        memberId,
        session,
        brand_id=brandId,
        background_tasks=background_tasks,
    )
    return SuccessResponse(message="Member removed successfully")
