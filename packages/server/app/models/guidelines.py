"""Brand guidelines model (one row per brand)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin, UUIDMixin


class BrandGuidelines(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "brand_guidelines"

    brand_id: uuid.UUID = Field(foreign_key="brands.id", unique=True, nullable=False, index=True)
    status: str = Field(default="draft", nullable=False, index=True)  # draft | pending_review | approved | archived
    source_document_path: Optional[str] = None
    voice: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    copy_guidelines: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    visual_guidelines: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    messaging: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    raw_extraction: Optional[dict] = Field(default=None, sa_type=JSONType)
    extracted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    extracted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    approved_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    approved_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
