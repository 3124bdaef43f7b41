"""Brand quota counters and the quota transaction audit log."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, JSONType, TimestampMixin, UUIDMixin

DEFAULT_PROMPT_TOKENS_LIMIT = 100_000
DEFAULT_IMAGE_GENERATION_LIMIT = 100
DEFAULT_WORKFLOW_EXECUTIONS_LIMIT = 1_000
DEFAULT_STORAGE_LIMIT_MB = 1_024


class BrandQuota(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "brand_quotas"

    brand_id: uuid.UUID = Field(foreign_key="brands.id", unique=True, nullable=False, index=True)
    prompt_tokens_limit: int = Field(default=DEFAULT_PROMPT_TOKENS_LIMIT, nullable=False)
    prompt_tokens_used: int = Field(default=0, nullable=False)
    prompt_tokens_reset_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    image_generation_limit: int = Field(default=DEFAULT_IMAGE_GENERATION_LIMIT, nullable=False)
    image_generation_used: int = Field(default=0, nullable=False)
    workflow_executions_limit: int = Field(default=DEFAULT_WORKFLOW_EXECUTIONS_LIMIT, nullable=False)
    workflow_executions_used: int = Field(default=0, nullable=False)
    storage_limit_mb: int = Field(default=DEFAULT_STORAGE_LIMIT_MB, nullable=False)
    last_topped_up_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    last_topped_up_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")


class QuotaTransaction(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "quota_transactions"

    brand_id: uuid.UUID = Field(foreign_key="brands.id", nullable=False, index=True)
    transaction_type: str = Field(nullable=False)  # topup | usage | reset | deduction
    quota_type: str = Field(nullable=False)  # prompt_tokens | image_generation | workflow_executions
    amount: int = Field(nullable=False)
    previous_value: int = Field(nullable=False)
    new_value: int = Field(nullable=False)
    performed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    description: Optional[str] = None
    meta: dict = Field(
        default_factory=dict,
        sa_column=sa.Column("metadata", JSONType, nullable=False, default=dict),
    )
