"""
Conversation invite link endpoints.

POST   /api/v1/conversation-invite-links                    — Create a link (owner)
GET    /api/v1/conversation-invite-links?conversationId=    — Active links (owner)
GET    /api/v1/conversation-invite-links?token=             — Public link details
PATCH  /api/v1/conversation-invite-links                    — Join {token} / deactivate {action, linkId}
DELETE /api/v1/conversation-invite-links?linkId=            — Delete a link (creator)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user, get_optional_user
from app.core.database import get_session
from app.services import invite_links as link_service
from brandhub_shared.schemas.common import SuccessResponse
from brandhub_shared.schemas.sharing import (
    InviteLinkAction,
    InviteLinkCreate,
    InviteLinkList,
    InviteLinkResponse,
)

router = APIRouter()


@router.post("", response_model=InviteLinkResponse, status_code=201)
async def create_link(
    body: InviteLinkCreate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    link = await link_service.create_invite_link(auth.user, body, session)
    return link_service.to_response(link)


@router.get("")
async def get_links(
    conversationId: Optional[uuid.UUID] = Query(None),
    token: Optional[str] = Query(None),
    auth: Optional[AuthenticatedUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """Link details by token (no sign-in needed), or the owner's active links."""
    if token:
        return await link_service.get_invite_details(token, session)

    if auth is None:
        raise HTTPException(status_code=401, detail="Authentication required")

    links = await link_service.list_invite_links(conversationId, auth.user, session)
    return InviteLinkList(links=[link_service.to_response(link) for link in links])


@router.patch("")
async def update_link(
    body: InviteLinkAction,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    if body.action == "deactivate":
        await link_service.deactivate_link(body.link_id, auth.user, session)
        return SuccessResponse(message="Invite link deactivated")
    return await link_service.join_via_link(body.token, auth.user, session)


@router.delete("", response_model=SuccessResponse)
async def delete_link(
    linkId: Optional[uuid.UUID] = Query(None),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await link_service.delete_link(linkId, auth.user, session)
    return SuccessResponse(message="Invite link deleted")
