"""Project and project share models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    brand_id: uuid.UUID = Field(foreign_key="brands.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)  # owner
    name: str = Field(nullable=False)
    description: Optional[str] = None


class ProjectShare(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "project_shares"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "shared_with", name="uq_project_shares_recipient"),
    )

    project_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    brand_id: uuid.UUID = Field(foreign_key="brands.id", nullable=False, index=True)
    shared_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    shared_with: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    status: str = Field(default="pending", nullable=False)  # pending | accepted | declined
    message: Optional[str] = None
    accepted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    declined_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
