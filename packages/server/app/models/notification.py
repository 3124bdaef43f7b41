"""In-app notification model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, JSONType, UUIDMixin


class Notification(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "notifications"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    brand_id: Optional[uuid.UUID] = Field(default=None, foreign_key="brands.id", index=True)
    type: str = Field(nullable=False)
    title: str = Field(nullable=False)
    message: str = Field(nullable=False)
    meta: dict = Field(
        default_factory=dict,
        sa_column=sa.Column("metadata", JSONType, nullable=False, default=dict),
    )
    read: bool = Field(default=False, nullable=False, index=True)
    read_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    conversation_id: Optional[uuid.UUID] = Field(default=None, index=True)
    project_id: Optional[uuid.UUID] = Field(default=None, index=True)
    share_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
