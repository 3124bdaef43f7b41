"""Conversation message model (append-only)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, UUIDMixin, utcnow


class Message(UUIDMixin, SQLModel, table=True):
    __tablename__ = "messages"

    conversation_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    role: str = Field(nullable=False)  # user | assistant | system
    content: str = Field(nullable=False)
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    model: Optional[str] = None
    tokens_used: int = Field(default=0, nullable=False)
    meta: dict = Field(
        default_factory=dict,
        sa_column=sa.Column("metadata", JSONType, nullable=False, default=dict),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_column_kwargs={"server_default": sa.text("CURRENT_TIMESTAMP")},
        sa_type=sa.DateTime(timezone=True),
    )
