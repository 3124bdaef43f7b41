"""Brand membership (join table)."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class BrandUser(SQLModel, table=True):
    __tablename__ = "brand_users"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    brand_id: uuid.UUID = Field(foreign_key="brands.id", primary_key=True, index=True)
    role: str = Field(nullable=False, default="user", index=True)  # owner | admin | editor | reviewer | user
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.text("CURRENT_TIMESTAMP")},
        sa_type=sa.DateTime(timezone=True),
    )
