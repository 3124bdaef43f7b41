"""Quota schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from .common import CamelModel, QuotaType, TransactionType


class QuotaCheck(CamelModel):
    has_quota: bool
    remaining: int


class QuotaUsage(CamelModel):
    used: int
    limit: int
    percent: int
    is_low: bool


class QuotaStatus(CamelModel):
    brand_id: uuid.UUID
    prompt_tokens: QuotaUsage
    image_generation: QuotaUsage
    workflow_executions: QuotaUsage
    storage_limit_mb: int
    storage_used_bytes: int = 0
    storage_file_count: int = 0


class QuotaTopupRequest(CamelModel):
    quota_type: QuotaType
    amount: int = Field(gt=0)
    description: Optional[str] = Field(default=None, max_length=500)


class QuotaTransactionRead(CamelModel):
    id: uuid.UUID
    transaction_type: TransactionType
    quota_type: QuotaType
    amount: int
    previous_value: int
    new_value: int
    performed_by: Optional[uuid.UUID] = None
    description: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class QuotaTransactionList(CamelModel):
    transactions: list[QuotaTransactionRead]
