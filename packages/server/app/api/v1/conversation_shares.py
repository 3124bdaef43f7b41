"""
Conversation share endpoints.

POST   /api/v1/conversation-shares                          — Share with users (owner only)
GET    /api/v1/conversation-shares?conversationId=          — Shares the caller made
GET    /api/v1/conversation-shares?pending=true             — Caller's pending invitations
GET    /api/v1/conversation-shares?conversationId=&myShares=true — Caller's own share
PATCH  /api/v1/conversation-shares                          — Accept / decline (recipient)
DELETE /api/v1/conversation-shares?shareId=                 — Revoke (sharer)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import conversations as conversation_service
from brandhub_shared.schemas.common import SuccessResponse
from brandhub_shared.schemas.sharing import (
    ConversationShareCreate,
    ConversationShareList,
    OwnShareList,
    PendingInvitationList,
    ShareCreateResponse,
    ShareRespondRequest,
    ShareRespondResponse,
)

router = APIRouter()


@router.post("", response_model=ShareCreateResponse)
async def create_shares(
    body: ConversationShareCreate,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    return await conversation_service.create_conversation_shares(
        auth.user, body, session, background_tasks
    )


@router.get("")
async def list_shares(
    conversationId: Optional[uuid.UUID] = Query(None),
    pending: bool = Query(False),
    myShares: bool = Query(False),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    if pending:
        invitations = await conversation_service.list_pending_invitations(auth.user, session)
        return PendingInvitationList(invitations=invitations)

    if conversationId is None:
        raise HTTPException(status_code=400, detail="conversationId or pending=true is required")

    if myShares:
        shares = await conversation_service.list_own_shares(conversationId, auth.user, session)
        return OwnShareList(shares=shares)

    shares = await conversation_service.list_shares_for_conversation(
        conversationId, auth.user, session
    )
    return ConversationShareList(shares=shares)


@router.patch("", response_model=ShareRespondResponse)
async def respond_to_share(
    body: ShareRespondRequest,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Accept or decline a pending invitation."""
    return await conversation_service.respond_to_share(
        auth.user, body.share_id, body.action, session, background_tasks
    )


@router.delete("", response_model=SuccessResponse)
async def revoke_share(
    shareId: Optional[uuid.UUID] = Query(None),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await conversation_service.revoke_share(auth.user, shareId, session)
    return SuccessResponse(message="Share revoked")
