"""Conversation, conversation share and invite link models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, TimestampMixin, UUIDMixin


class Conversation(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "conversations"

    brand_id: uuid.UUID = Field(foreign_key="brands.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)  # owner
    project_id: Optional[uuid.UUID] = Field(default=None, foreign_key="projects.id", index=True)
    title: Optional[str] = None
    archived: bool = Field(default=False, nullable=False)
    last_message_at: Optional[datetime] = Field(
        default=None, index=True, sa_type=sa.DateTime(timezone=True)
    )


class ConversationShare(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "conversation_shares"
    __table_args__ = (
        sa.UniqueConstraint("conversation_id", "shared_with", name="uq_conversation_shares_recipient"),
    )

    conversation_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    brand_id: uuid.UUID = Field(foreign_key="brands.id", nullable=False, index=True)
    shared_by: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    shared_with: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    permission: str = Field(default="read", nullable=False)  # read | write
    status: str = Field(default="pending", nullable=False, index=True)  # pending | accepted | declined
    message: Optional[str] = None
    accepted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    declined_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))


class ConversationInviteLink(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "conversation_invite_links"

    conversation_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    token: str = Field(unique=True, index=True, nullable=False)
    permission: str = Field(default="write", nullable=False)
    max_uses: Optional[int] = None
    use_count: int = Field(default=0, nullable=False)
    expires_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    is_active: bool = Field(default=True, nullable=False)
