"""
Conversation invite links: shareable tokens that grant an accepted share
on use. Inactive or unknown links are 404; expired or exhausted links are 410.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.models.base import as_utc, utcnow
from app.models.conversation import Conversation, ConversationInviteLink, ConversationShare
from app.models.user import User
from app.services.conversations import UserDirectory, add_system_message
from brandhub_shared.schemas.common import SharePermission, ShareStatus
from brandhub_shared.schemas.sharing import (
    InviteJoinResponse,
    InviteLinkCreate,
    InviteLinkDetails,
    InviteLinkResponse,
)

log = structlog.get_logger()


def generate_invite_token() -> str:
    return secrets.token_urlsafe(24)


def invite_url(token: str) -> str:
    return f"{get_settings().app_url.rstrip('/')}/chat/join/{token}"


def to_response(link: ConversationInviteLink) -> InviteLinkResponse:
    return InviteLinkResponse(
        id=link.id,
        token=link.token,
        permission=link.permission,
        max_uses=link.max_uses,
        use_count=link.use_count,
        expires_at=link.expires_at,
        is_active=link.is_active,
        created_at=link.created_at,
        url=invite_url(link.token),
    )


async def _owned_conversation(
    conversation_id: Optional[uuid.UUID], caller: User, session: AsyncSession
) -> Conversation:
    if conversation_id is None:
        raise HTTPException(status_code=400, detail="conversationId is required")
    conversation = await session.get(Conversation, conversation_id)
    if conversation is None or conversation.user_id != caller.id:
        raise HTTPException(status_code=404, detail="Conversation not found or access denied")
    return conversation


async def _usable_link(token: str, session: AsyncSession) -> ConversationInviteLink:
    result = await session.execute(
        select(ConversationInviteLink).where(
            ConversationInviteLink.token == token,
            ConversationInviteLink.is_active == True,  # noqa: E712
        )
    )
    link = result.scalar_one_or_none()
    if link is None:
        raise HTTPException(status_code=404, detail="Invalid or expired invite link")
    expires_at = as_utc(link.expires_at)
    if expires_at is not None and expires_at < utcnow():
        raise HTTPException(status_code=410, detail="This invite link has expired")
    if link.max_uses and link.use_count >= link.max_uses:
        raise HTTPException(
            status_code=410, detail="This invite link has reached its maximum uses"
        )
    return link


async def create_invite_link(
    caller: User, body: InviteLinkCreate, session: AsyncSession
) -> ConversationInviteLink:
    if body.permission not in (SharePermission.READ.value, SharePermission.WRITE.value):
        raise HTTPException(
            status_code=400, detail='Invalid permission value. Must be "read" or "write"'
        )
    conversation = await _owned_conversation(body.conversation_id, caller, session)

    expires_at = None
    if body.expires_in_hours:
        expires_at = utcnow() + timedelta(hours=body.expires_in_hours)

    link = ConversationInviteLink(
        conversation_id=conversation.id,
        created_by=caller.id,
        token=generate_invite_token(),
        permission=body.permission,
        max_uses=body.max_uses,
        expires_at=expires_at,
    )
    session.add(link)
    await session.flush()
    log.info(
        "invite_link.created",
        link_id=str(link.id),
        conversation_id=str(conversation.id),
        permission=link.permission,
    )
    return link


async def list_invite_links(
    conversation_id: Optional[uuid.UUID], caller: User, session: AsyncSession
) -> list[ConversationInviteLink]:
    conversation = await _owned_conversation(conversation_id, caller, session)
    result = await session.execute(
        select(ConversationInviteLink)
        .where(
            ConversationInviteLink.conversation_id == conversation.id,
            ConversationInviteLink.is_active == True,  # noqa: E712
        )
        .order_by(ConversationInviteLink.created_at.desc())
    )
    return list(result.scalars().all())


async def get_invite_details(token: str, session: AsyncSession) -> InviteLinkDetails:
    """Public preview of a link, shown before the visitor signs in."""
    link = await _usable_link(token, session)
    conversation = await session.get(Conversation, link.conversation_id)
    return InviteLinkDetails(
        id=link.id,
        conversation_id=link.conversation_id,
        conversation_title=(conversation.title if conversation else None) or "Untitled",
        permission=link.permission,
        created_by=await UserDirectory(session).summary(link.created_by),
        expires_at=link.expires_at,
        max_uses=link.max_uses,
        use_count=link.use_count,
    )


async def _claim_use(link: ConversationInviteLink, session: AsyncSession) -> None:
    """Atomically bump use_count, failing if the last use was taken concurrently."""
    result = await session.execute(
        update(ConversationInviteLink)
        .where(
            ConversationInviteLink.id == link.id,
            or_(
                ConversationInviteLink.max_uses.is_(None),
                ConversationInviteLink.use_count < ConversationInviteLink.max_uses,
            ),
        )
        .values(use_count=ConversationInviteLink.use_count + 1)
        .returning(ConversationInviteLink.use_count)
        .execution_options(synchronize_session=False)
    )
    if result.first() is None:
        raise HTTPException(
            status_code=410, detail="This invite link has reached its maximum uses"
        )


async def join_via_link(
    token: Optional[str], caller: User, session: AsyncSession
) -> InviteJoinResponse:
    if not token:
        raise HTTPException(status_code=400, detail="token is required")

    link = await _usable_link(token, session)
    conversation = await session.get(Conversation, link.conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Invalid or expired invite link")

    if conversation.user_id == caller.id:
        return InviteJoinResponse(
            conversation_id=conversation.id,
            conversation_title=conversation.title,
            message="You own this conversation",
        )

    result = await session.execute(
        select(ConversationShare).where(
            ConversationShare.conversation_id == conversation.id,
            ConversationShare.shared_with == caller.id,
        )
    )
    share = result.scalar_one_or_none()
    if share is not None and share.status == ShareStatus.ACCEPTED.value:
        return InviteJoinResponse(
            conversation_id=conversation.id,
            conversation_title=conversation.title,
            message="Already have access",
        )

    await _claim_use(link, session)

    now = utcnow()
    if share is None:
        share = ConversationShare(
            conversation_id=conversation.id,
            brand_id=conversation.brand_id,
            shared_by=link.created_by,
            shared_with=caller.id,
        )
    share.permission = link.permission
    share.status = ShareStatus.ACCEPTED.value
    share.accepted_at = now
    share.declined_at = None
    session.add(share)
    await session.flush()

    await add_system_message(
        conversation.id,
        f"{caller.display_name} joined via invite link",
        session,
        metadata={
            "type": "user_joined",
            "via": "invite_link",
            "user_id": str(caller.id),
            "user_name": caller.display_name,
            "user_email": caller.email,
        },
    )

    log.info(
        "invite_link.joined",
        link_id=str(link.id),
        conversation_id=str(conversation.id),
        user_id=str(caller.id),
    )
    return InviteJoinResponse(
        conversation_id=conversation.id,
        conversation_title=conversation.title,
        message="Joined conversation",
    )


async def _created_link(
    link_id: Optional[uuid.UUID], caller: User, session: AsyncSession
) -> ConversationInviteLink:
    if link_id is None:
        raise HTTPException(status_code=400, detail="linkId is required")
    link = await session.get(ConversationInviteLink, link_id)
    if link is None or link.created_by != caller.id:
        raise HTTPException(status_code=404, detail="Invite link not found")
    return link


async def deactivate_link(
    link_id: Optional[uuid.UUID], caller: User, session: AsyncSession
) -> None:
    link = await _created_link(link_id, caller, session)
    link.is_active = False
    session.add(link)
    await session.flush()
    log.info("invite_link.deactivated", link_id=str(link.id))


async def delete_link(link_id: Optional[uuid.UUID], caller: User, session: AsyncSession) -> None:
    link = await _created_link(link_id, caller, session)
    await session.delete(link)
    await session.flush()
    log.info("invite_link.deleted", link_id=str(link_id))
