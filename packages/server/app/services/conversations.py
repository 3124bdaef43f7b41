"""
Conversation sharing and collaborative access.

Access rule used throughout: the owner, or a user holding an *accepted*
share. Pending and declined shares grant nothing.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import BackgroundTasks, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.realtime import push_event
from app.models.base import utcnow
from app.models.brand_user import BrandUser
from app.models.conversation import Conversation, ConversationShare
from app.models.message import Message
from app.models.user import User
from app.services.notifications import create_notification, schedule_push
from brandhub_shared.schemas.common import (
    MessageRole,
    NotificationType,
    SharePermission,
    ShareStatus,
    UserSummary,
)
from brandhub_shared.schemas.sharing import (
    CollaborativeMessagesResponse,
    ConversationShareCreate,
    ConversationShareItem,
    OwnShareItem,
    PendingInvitation,
    ShareCreateResponse,
    ShareRespondResponse,
)

log = structlog.get_logger()

SHARED_CONTENT_PREVIEW_CHARS = 500


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class UserDirectory:
    """Per-request cache of user display details."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._cache: dict[uuid.UUID, Optional[User]] = {}

    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        if user_id not in self._cache:
            self._cache[user_id] = await self._session.get(User, user_id)
        return self._cache[user_id]

    async def summary(self, user_id: uuid.UUID) -> UserSummary:
        user = await self.get(user_id)
        if user is None:
            return UserSummary(id=str(user_id), email="Unknown", name="Unknown User")
        return UserSummary(id=str(user.id), email=user.email or "Unknown", name=user.display_name)


async def get_conversation(conversation_id: uuid.UUID, session: AsyncSession) -> Conversation:
    conversation = await session.get(Conversation, conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


async def get_accepted_share(
    conversation_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> ConversationShare | None:
    result = await session.execute(
        select(ConversationShare).where(
            ConversationShare.conversation_id == conversation_id,
            ConversationShare.shared_with == user_id,
            ConversationShare.status == ShareStatus.ACCEPTED.value,
        )
    )
    return result.scalar_one_or_none()


async def has_accepted_write_share(conversation_id: uuid.UUID, session: AsyncSession) -> bool:
    result = await session.execute(
        select(ConversationShare.id)
        .where(
            ConversationShare.conversation_id == conversation_id,
            ConversationShare.permission == SharePermission.WRITE.value,
            ConversationShare.status == ShareStatus.ACCEPTED.value,
        )
        .limit(1)
    )
    return result.first() is not None


async def _participant_ids(conversation: Conversation, session: AsyncSession) -> set[uuid.UUID]:
    result = await session.execute(
        select(ConversationShare.shared_with).where(
            ConversationShare.conversation_id == conversation.id,
            ConversationShare.status == ShareStatus.ACCEPTED.value,
        )
    )
    return {conversation.user_id, *result.scalars().all()}


def message_row(message: Message) -> dict:
    """Message as stored (snake_case keys)."""
    return {
        "id": str(message.id),
        "conversation_id": str(message.conversation_id),
        "role": message.role,
        "content": message.content,
        "tokens_used": message.tokens_used,
        "model": message.model,
        "metadata": message.meta or {},
        "created_at": message.created_at.isoformat() if message.created_at else None,
        "user_id": str(message.user_id) if message.user_id else None,
    }


async def _list_messages(conversation_id: uuid.UUID, session: AsyncSession) -> list[Message]:
    result = await session.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at, Message.id)
    )
    return list(result.scalars().all())


async def add_system_message(
    conversation_id: uuid.UUID,
    content: str,
    session: AsyncSession,
    metadata: dict,
) -> Message:
    message = Message(
        conversation_id=conversation_id,
        role=MessageRole.SYSTEM.value,
        content=content,
        model="system",
        tokens_used=0,
        meta=metadata,
    )
    session.add(message)
    await session.flush()
    return message


# ---------------------------------------------------------------------------
# Collaborative access
# ---------------------------------------------------------------------------

async def get_collaborative_messages(
    conversation_id: uuid.UUID,
    caller: User,
    session: AsyncSession,
) -> CollaborativeMessagesResponse:
    # A missing conversation is reported like an inaccessible one.
    conversation = await session.get(Conversation, conversation_id)
    is_owner = conversation is not None and conversation.user_id == caller.id

    share = await get_accepted_share(conversation_id, caller.id, session)
    if conversation is None or (not is_owner and share is None):
        raise HTTPException(status_code=403, detail="No access to this conversation")

    is_collaborative = await has_accepted_write_share(conversation_id, session) or (
        share is not None and share.permission == SharePermission.WRITE.value
    )

    directory = UserDirectory(session)
    messages = []
    for message in await _list_messages(conversation_id, session):
        row = message_row(message)
        if message.role == MessageRole.USER.value and message.user_id:
            author = await directory.get(message.user_id)
            row["sender_name"] = author.display_name if author else "User"
            row["sender_email"] = author.email if author else None
        elif message.role == MessageRole.ASSISTANT.value:
            row["sender_name"] = "Assistant"
            row["sender_email"] = None
        else:
            row["sender_name"] = message.role
            row["sender_email"] = None
        row["is_current_user"] = message.user_id == caller.id
        messages.append(row)

    return CollaborativeMessagesResponse(
        messages=messages,
        is_collaborative=is_collaborative,
        is_owner=is_owner,
    )


async def get_shared_messages(
    conversation_id: uuid.UUID, caller: User, session: AsyncSession
) -> list[dict]:
    conversation = await session.get(Conversation, conversation_id)
    if conversation is None or (
        conversation.user_id != caller.id
        and await get_accepted_share(conversation_id, caller.id, session) is None
    ):
        raise HTTPException(status_code=403, detail="No access to this conversation")
    return [message_row(m) for m in await _list_messages(conversation_id, session)]


async def post_collaborative_message(
    conversation_id: uuid.UUID,
    content: str,
    caller: User,
    session: AsyncSession,
    background_tasks: BackgroundTasks | None = None,
) -> dict:
    """Append a user message; requires ownership or an accepted write share."""
    conversation = await session.get(Conversation, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=403, detail="No write access to this conversation")
    if conversation.user_id != caller.id:
        share = await get_accepted_share(conversation_id, caller.id, session)
        if share is None or share.permission != SharePermission.WRITE.value:
            raise HTTPException(status_code=403, detail="No write access to this conversation")

    message = Message(
        conversation_id=conversation_id,
        role=MessageRole.USER.value,
        content=content,
        user_id=caller.id,
        meta={"sender_name": caller.display_name},
    )
    session.add(message)
    conversation.last_message_at = utcnow()
    session.add(conversation)
    await session.flush()

    row = message_row(message)
    row["sender_name"] = caller.display_name
    row["sender_email"] = caller.email

    if background_tasks is not None:
        for user_id in await _participant_ids(conversation, session):
            if user_id != caller.id:
                background_tasks.add_task(push_event, user_id, "message.created", row)

    log.info(
        "conversation.message_posted",
        conversation_id=str(conversation_id),
        user_id=str(caller.id),
    )
    row["is_current_user"] = True
    return row


# ---------------------------------------------------------------------------
# Shared listings
# ---------------------------------------------------------------------------

async def get_shared_conversation(
    conversation_id: uuid.UUID, caller: User, session: AsyncSession
) -> Conversation:
    if await get_accepted_share(conversation_id, caller.id, session) is None:
        raise HTTPException(
            status_code=403, detail="No accepted share found for this conversation"
        )
    return await get_conversation(conversation_id, session)


async def list_shared_conversations(caller: User, session: AsyncSession) -> list[Conversation]:
    result = await session.execute(
        select(Conversation)
        .join(ConversationShare, ConversationShare.conversation_id == Conversation.id)
        .where(
            ConversationShare.shared_with == caller.id,
            ConversationShare.status == ShareStatus.ACCEPTED.value,
            Conversation.archived == False,  # noqa: E712
        )
        .order_by(Conversation.last_message_at.desc().nulls_last(), Conversation.created_at.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Share lifecycle
# ---------------------------------------------------------------------------

async def create_conversation_shares(
    caller: User,
    body: ConversationShareCreate,
    session: AsyncSession,
    background_tasks: BackgroundTasks | None = None,
) -> ShareCreateResponse:
    if body.permission not in (SharePermission.READ.value, SharePermission.WRITE.value):
        raise HTTPException(
            status_code=400, detail='Invalid permission value. Must be "read" or "write"'
        )

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

    if body.conversation_id is None or not target_ids:
        raise HTTPException(
            status_code=400,
            detail="conversationId and either userIds array or email are required",
        )

    conversation = await get_conversation(body.conversation_id, session)
    if conversation.user_id != caller.id:
        raise HTTPException(status_code=403, detail="You do not own this conversation")

    result = await session.execute(
        select(ConversationShare.shared_with).where(
            ConversationShare.conversation_id == conversation.id,
            ConversationShare.shared_with.in_(target_ids),
        )
    )
    already_shared = set(result.scalars().all())
    new_ids = [uid for uid in target_ids if uid not in already_shared and uid != caller.id]

    if not new_ids:
        return ShareCreateResponse(shares_created=0, message="Already shared with this user")

    known = await session.execute(select(User.id).where(User.id.in_(new_ids)))
    new_ids = [uid for uid in new_ids if uid in set(known.scalars().all())]

    title = conversation.title or "Untitled"
    notifications = []
    for recipient_id in new_ids:
        share = ConversationShare(
            conversation_id=conversation.id,
            brand_id=conversation.brand_id,
            shared_by=caller.id,
            shared_with=recipient_id,
            permission=body.permission,
            status=ShareStatus.PENDING.value,
            message=body.message or None,
        )
        session.add(share)
        await session.flush()
        notifications.append(
            await create_notification(
                session,
                user_id=recipient_id,
                brand_id=conversation.brand_id,
                type=NotificationType.CONVERSATION_SHARED.value,
                title="Conversation shared with you",
                message=f'{caller.display_name} shared "{title}" with you',
                metadata={"permission": body.permission, "note": body.message},
                conversation_id=conversation.id,
                share_id=share.id,
                actor_id=caller.id,
            )
        )
    schedule_push(background_tasks, notifications)

    log.info(
        "conversation.shared",
        conversation_id=str(conversation.id),
        shared_by=str(caller.id),
        recipients=len(new_ids),
        permission=body.permission,
    )
    return ShareCreateResponse(shares_created=len(new_ids), conversation_title=conversation.title)


async def list_shares_for_conversation(
    conversation_id: uuid.UUID, caller: User, session: AsyncSession
) -> list[ConversationShareItem]:
    """Shares the caller has made on a conversation."""
    result = await session.execute(
        select(ConversationShare)
        .where(
            ConversationShare.conversation_id == conversation_id,
            ConversationShare.shared_by == caller.id,
        )
        .order_by(ConversationShare.created_at)
    )
    directory = UserDirectory(session)
    items = []
    for share in result.scalars().all():
        recipient = await directory.summary(share.shared_with)
        items.append(
            ConversationShareItem(
                id=share.id,
                user_id=share.shared_with,
                name=recipient.name,
                email=recipient.email,
                status=share.status,
                permission=share.permission or SharePermission.READ.value,
                created_at=share.created_at,
                accepted_at=share.accepted_at,
            )
        )
    return items


async def list_own_shares(
    conversation_id: uuid.UUID, caller: User, session: AsyncSession
) -> list[OwnShareItem]:
    result = await session.execute(
        select(ConversationShare).where(
            ConversationShare.conversation_id == conversation_id,
            ConversationShare.shared_with == caller.id,
        )
    )
    return [
        OwnShareItem(
            id=s.id, status=s.status, permission=s.permission, conversation_id=s.conversation_id
        )
        for s in result.scalars().all()
    ]


async def list_pending_invitations(caller: User, session: AsyncSession) -> list[PendingInvitation]:
    result = await session.execute(
        select(ConversationShare, Conversation)
        .join(Conversation, Conversation.id == ConversationShare.conversation_id)
        .where(
            ConversationShare.shared_with == caller.id,
            ConversationShare.status == ShareStatus.PENDING.value,
        )
        .order_by(ConversationShare.created_at.desc())
    )
    directory = UserDirectory(session)
    return [
        PendingInvitation(
            id=share.id,
            conversation_id=share.conversation_id,
            conversation_title=conversation.title or "Untitled",
            shared_by=await directory.summary(share.shared_by),
            permission=share.permission,
            message=share.message,
            created_at=share.created_at,
        )
        for share, conversation in result.all()
    ]


async def respond_to_share(
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

    share = await session.get(ConversationShare, share_id)
    if share is None or share.shared_with != caller.id:
        raise HTTPException(status_code=404, detail="Invitation not found")

    new_status = ShareStatus.ACCEPTED.value if action == "accept" else ShareStatus.DECLINED.value
    if share.status == new_status:
        return ShareRespondResponse(status=share.status, conversation_id=share.conversation_id)

    now = utcnow()
    share.status = new_status
    if action == "accept":
        share.accepted_at = now
    else:
        share.declined_at = now
    session.add(share)
    await session.flush()

    if action == "accept":
        await add_system_message(
            share.conversation_id,
            f"{caller.display_name} joined the chat",
            session,
            metadata={
                "type": "user_joined",
                "user_id": str(caller.id),
                "user_name": caller.display_name,
                "user_email": caller.email,
            },
        )

    conversation = await session.get(Conversation, share.conversation_id)
    title = conversation.title if conversation and conversation.title else "Untitled"
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
        message=f'{caller.display_name} {verb} your invitation to "{title}"',
        conversation_id=share.conversation_id,
        share_id=share.id,
        actor_id=caller.id,
    )
    schedule_push(background_tasks, [notification])

    log.info(
        "conversation.share_responded",
        share_id=str(share.id),
        user_id=str(caller.id),
        status=new_status,
    )
    return ShareRespondResponse(status=share.status, conversation_id=share.conversation_id)


async def revoke_share(caller: User, share_id: Optional[uuid.UUID], session: AsyncSession) -> None:
    if share_id is None:
        raise HTTPException(status_code=400, detail="shareId is required")
    share = await session.get(ConversationShare, share_id)
    if share is None or share.shared_by != caller.id:
        raise HTTPException(status_code=404, detail="Share not found")
    await session.delete(share)
    await session.flush()
    log.info("conversation.share_revoked", share_id=str(share_id), user_id=str(caller.id))


# ---------------------------------------------------------------------------
# Message sharing
# ---------------------------------------------------------------------------

async def share_message(
    caller: User,
    content: Optional[str],
    user_ids: list[uuid.UUID],
    session: AsyncSession,
    background_tasks: BackgroundTasks | None = None,
) -> int:
    """Notify teammates about a message. Returns the number of recipients."""
    if not content or not user_ids:
        raise HTTPException(
            status_code=400, detail="Missing required fields: content and userIds"
        )

    # Recipients must share at least one brand with the sender.
    caller_brands = select(BrandUser.brand_id).where(BrandUser.user_id == caller.id)
    result = await session.execute(
        select(BrandUser.user_id, BrandUser.brand_id)
        .where(BrandUser.user_id.in_(user_ids), BrandUser.brand_id.in_(caller_brands))
        .order_by(BrandUser.created_at)
    )
    recipients: dict[uuid.UUID, uuid.UUID] = {}
    for user_id, brand_id in result.all():
        recipients.setdefault(user_id, brand_id)

    if not recipients:
        raise HTTPException(status_code=404, detail="No valid recipients found")

    notifications = []
    for recipient_id, brand_id in recipients.items():
        notifications.append(
            await create_notification(
                session,
                user_id=recipient_id,
                brand_id=brand_id,
                type=NotificationType.MESSAGE_SHARED.value,
                title="Message shared with you",
                message=f"{caller.display_name} shared a message with you",
                metadata={
                    "content": content[:SHARED_CONTENT_PREVIEW_CHARS],
                    "sender_id": str(caller.id),
                    "sender_name": caller.display_name,
                },
                actor_id=caller.id,
            )
        )
    schedule_push(background_tasks, notifications)
    log.info("message.shared", user_id=str(caller.id), recipients=len(recipients))
    return len(recipients)
