"""
Sharing schemas: conversation shares, invite links, project shares,
message shares and the collaborative message view.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from .common import CamelModel, UserSummary


# ---------------------------------------------------------------------------
# Conversation shares
# ---------------------------------------------------------------------------

class ConversationShareCreate(CamelModel):
    conversation_id: Optional[uuid.UUID] = None
    user_ids: list[uuid.UUID] = Field(default_factory=list)
    email: Optional[str] = None
    message: Optional[str] = None
    permission: str = "read"


class ShareCreateResponse(CamelModel):
    success: bool = True
    shares_created: int
    conversation_title: Optional[str] = None
    message: Optional[str] = None


class ShareRespondRequest(CamelModel):
    share_id: Optional[uuid.UUID] = None
    action: Optional[str] = None


class ShareRespondResponse(CamelModel):
    success: bool = True
    status: str
    conversation_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None


class ConversationShareItem(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    email: str
    status: str
    permission: str
    created_at: datetime
    accepted_at: Optional[datetime] = None


class PendingInvitation(CamelModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    conversation_title: str
    shared_by: UserSummary
    permission: str
    message: Optional[str] = None
    created_at: datetime


class ConversationShareList(CamelModel):
    shares: list[ConversationShareItem]


class OwnShareItem(CamelModel):
    id: uuid.UUID
    status: str
    permission: str
    conversation_id: uuid.UUID


class OwnShareList(CamelModel):
    shares: list[OwnShareItem]


class PendingInvitationList(CamelModel):
    invitations: list[PendingInvitation]


# ---------------------------------------------------------------------------
# Invite links
# ---------------------------------------------------------------------------

class InviteLinkCreate(CamelModel):
    conversation_id: Optional[uuid.UUID] = None
    permission: str = "write"
    max_uses: Optional[int] = Field(default=None, ge=1)
    expires_in_hours: Optional[int] = Field(default=None, ge=1)


class InviteLinkResponse(CamelModel):
    id: uuid.UUID
    token: str
    permission: str
    max_uses: Optional[int] = None
    use_count: int = 0
    expires_at: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    url: str


class InviteLinkDetails(CamelModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    conversation_title: str
    permission: str
    created_by: UserSummary
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    use_count: int


class InviteLinkList(CamelModel):
    links: list[InviteLinkResponse]


class InviteLinkAction(CamelModel):
    token: Optional[str] = None
    action: Optional[str] = None
    link_id: Optional[uuid.UUID] = None


class InviteJoinResponse(CamelModel):
    success: bool = True
    conversation_id: uuid.UUID
    conversation_title: Optional[str] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Project shares
# ---------------------------------------------------------------------------

class ProjectShareCreate(CamelModel):
    project_id: Optional[uuid.UUID] = None
    user_ids: list[uuid.UUID] = Field(default_factory=list)
    email: Optional[str] = None
    message: Optional[str] = None


class ProjectShareCreateResponse(CamelModel):
    success: bool = True
    shares_created: int
    project_name: Optional[str] = None
    message: Optional[str] = None


class ProjectShareItem(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    project_name: Optional[str] = None
    shared_by: uuid.UUID
    shared_with: uuid.UUID
    status: str
    message: Optional[str] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None


class ProjectShareList(CamelModel):
    shares: list[ProjectShareItem]


# ---------------------------------------------------------------------------
# Shared listings
# ---------------------------------------------------------------------------

class ConversationRead(CamelModel):
    id: uuid.UUID
    brand_id: uuid.UUID
    user_id: uuid.UUID
    project_id: Optional[uuid.UUID] = None
    title: Optional[str] = None
    archived: bool
    last_message_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProjectRead(CamelModel):
    id: uuid.UUID
    brand_id: uuid.UUID
    user_id: uuid.UUID
    name: str
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SharedConversationList(CamelModel):
    conversations: list[ConversationRead]


class SharedConversationResponse(CamelModel):
    conversation: ConversationRead


class SharedProjectList(CamelModel):
    projects: list[ProjectRead]
    conversations: list[ConversationRead]


# ---------------------------------------------------------------------------
# Collaborative messages
# ---------------------------------------------------------------------------

class CollaborativeMessagesResponse(CamelModel):
    messages: list[dict[str, Any]]
    is_collaborative: bool
    is_owner: bool


class SharedMessagesResponse(CamelModel):
    messages: list[dict[str, Any]]


class CollaborativeMessageCreate(CamelModel):
    conversation_id: uuid.UUID
    content: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Message sharing
# ---------------------------------------------------------------------------

class ShareMessageRequest(CamelModel):
    content: Optional[str] = None
    user_ids: list[uuid.UUID] = Field(default_factory=list)
