"""
Brand quota service: metered usage, top-ups and the transaction audit log.

``use_quota`` checks and increments in one conditional UPDATE, so concurrent
consumers can never push usage past the limit.
"""

from __future__ import annotations

import math
import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import INVALID_INPUT, NOT_FOUND, ApiError, QuotaExceeded
from app.core.storage import StorageBackend
from app.models.base import utcnow
from app.models.quota import BrandQuota, QuotaTransaction
from brandhub_shared.schemas.common import QuotaType, TransactionType
from brandhub_shared.schemas.quotas import QuotaCheck, QuotaStatus, QuotaUsage

log = structlog.get_logger()

LOW_QUOTA_THRESHOLD = 0.2

# quota_type -> (used column, limit column)
QUOTA_COLUMNS: dict[str, tuple[str, str]] = {
    QuotaType.PROMPT_TOKENS.value: ("prompt_tokens_used", "prompt_tokens_limit"),
    QuotaType.IMAGE_GENERATION.value: ("image_generation_used", "image_generation_limit"),
    QuotaType.WORKFLOW_EXECUTIONS.value: ("workflow_executions_used", "workflow_executions_limit"),
}


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def get_quota_usage_percent(used: int, limit: int) -> int:
    if limit == 0:
        return 0
    return math.floor(used / limit * 100 + 0.5)


def is_quota_running_low(used: int, limit: int) -> bool:
    """Less than 20% of the limit remains."""
    return (limit - used) < limit * LOW_QUOTA_THRESHOLD


def is_quota_exhausted(used: int, limit: int) -> bool:
    return used >= limit


def format_quota(value: int, quota_type: str | QuotaType) -> str:
    quota_type = QuotaType(quota_type).value
    if quota_type == QuotaType.PROMPT_TOKENS.value:
        if value >= 1_000_000:
            return f"{value / 1_000_000:.1f}M"
        if value >= 1_000:
            return f"{value / 1_000:.1f}K"
        return str(value)
    return f"{value:,}"


def _columns(quota_type: str | QuotaType) -> tuple[str, str]:
    key = quota_type.value if isinstance(quota_type, QuotaType) else quota_type
    try:
        return QUOTA_COLUMNS[key]
    except KeyError:
        raise ApiError(
            status_code=400,
            code=INVALID_INPUT,
            message=f"Unknown quota type: {key}",
            details={"allowed": sorted(QUOTA_COLUMNS)},
        )


def _validate_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ApiError(
            status_code=400,
            code=INVALID_INPUT,
            message="Amount must be a positive integer",
            details={"amount": amount},
        )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_brand_quota(brand_id: uuid.UUID, session: AsyncSession) -> BrandQuota | None:
    result = await session.execute(
        select(BrandQuota)
        .where(BrandQuota.brand_id == brand_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def ensure_brand_quota(brand_id: uuid.UUID, session: AsyncSession) -> BrandQuota:
    """Provision the default quota row for a brand if it has none."""
    quota = await get_brand_quota(brand_id, session)
    if quota is None:
        quota = BrandQuota(brand_id=brand_id)
        session.add(quota)
        await session.flush()
        log.info("quota.provisioned", brand_id=str(brand_id))
    return quota


async def check_quota(
    brand_id: uuid.UUID,
    quota_type: str | QuotaType,
    amount: int,
    session: AsyncSession,
) -> QuotaCheck:
    """Advisory, read-only check. A brand without a quota row has none."""
    used_name, limit_name = _columns(quota_type)
    quota = await get_brand_quota(brand_id, session)
    if quota is None:
        return QuotaCheck(has_quota=False, remaining=0)
    remaining = getattr(quota, limit_name) - getattr(quota, used_name)
    return QuotaCheck(has_quota=remaining >= amount, remaining=remaining)


def _usage(quota: BrandQuota, quota_type: QuotaType) -> QuotaUsage:
    used_name, limit_name = QUOTA_COLUMNS[quota_type.value]
    used, limit = getattr(quota, used_name), getattr(quota, limit_name)
    return QuotaUsage(
        used=used,
        limit=limit,
        percent=get_quota_usage_percent(used, limit),
        is_low=is_quota_running_low(used, limit),
    )


async def get_quota_status(
    brand_id: uuid.UUID,
    session: AsyncSession,
    storage: StorageBackend | None = None,
) -> QuotaStatus:
    quota = await get_brand_quota(brand_id, session)
    if quota is None:
        raise ApiError(
            status_code=404,
            code=NOT_FOUND,
            message="No quota configured for this brand",
        )
    used_bytes, file_count = (0, 0)
    if storage is not None:
        used_bytes, file_count = await storage.usage(brand_id)
    return QuotaStatus(
        brand_id=brand_id,
        prompt_tokens=_usage(quota, QuotaType.PROMPT_TOKENS),
        image_generation=_usage(quota, QuotaType.IMAGE_GENERATION),
        workflow_executions=_usage(quota, QuotaType.WORKFLOW_EXECUTIONS),
        storage_limit_mb=quota.storage_limit_mb,
        storage_used_bytes=used_bytes,
        storage_file_count=file_count,
    )


async def list_quota_transactions(
    brand_id: uuid.UUID,
    session: AsyncSession,
    *,
    quota_type: Optional[str] = None,
    transaction_type: Optional[str] = None,
    limit: int = 50,
) -> list[QuotaTransaction]:
    query = select(QuotaTransaction).where(QuotaTransaction.brand_id == brand_id)
    if quota_type:
        _columns(quota_type)
        query = query.where(QuotaTransaction.quota_type == quota_type)
    if transaction_type:
        query = query.where(QuotaTransaction.transaction_type == transaction_type)
    query = query.order_by(QuotaTransaction.created_at.desc()).limit(max(1, min(limit, 500)))
    result = await session.execute(query)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def use_quota(
    brand_id: uuid.UUID,
    quota_type: str | QuotaType,
    amount: int,
    session: AsyncSession,
    *,
    performed_by: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> int:
    """Consume ``amount`` units. Returns the new used value or raises QuotaExceeded."""
    _validate_amount(amount)
    used_name, limit_name = _columns(quota_type)
    used_col = getattr(BrandQuota, used_name)
    limit_col = getattr(BrandQuota, limit_name)
    type_value = quota_type.value if isinstance(quota_type, QuotaType) else quota_type

    result = await session.execute(
        update(BrandQuota)
        .where(BrandQuota.brand_id == brand_id, used_col + amount <= limit_col)
        .values({used_name: used_col + amount, "updated_at": utcnow()})
        .returning(used_col, limit_col)
        .execution_options(synchronize_session=False)
    )
    row = result.first()

    if row is None:
        check = await check_quota(brand_id, type_value, amount, session)
        log.warning(
            "quota.exceeded",
            brand_id=str(brand_id),
            quota_type=type_value,
            requested=amount,
            remaining=check.remaining,
        )
        raise QuotaExceeded(type_value, amount, check.remaining)

    new_used, limit = row
    session.add(
        QuotaTransaction(
            brand_id=brand_id,
            transaction_type=TransactionType.USAGE.value,
            quota_type=type_value,
            amount=amount,
            previous_value=new_used - amount,
            new_value=new_used,
            performed_by=performed_by,
            description=description,
            meta=metadata or {},
        )
    )
    await session.flush()

    log.info(
        "quota.used",
        brand_id=str(brand_id),
        quota_type=type_value,
        amount=amount,
        used=new_used,
        limit=limit,
    )
    return new_used


async def topup_quota(
    brand_id: uuid.UUID,
    quota_type: str | QuotaType,
    amount: int,
    session: AsyncSession,
    *,
    performed_by: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
) -> int:
    """Raise a quota's limit by ``amount``. Returns the new limit."""
    _validate_amount(amount)
    _, limit_name = _columns(quota_type)
    limit_col = getattr(BrandQuota, limit_name)
    type_value = quota_type.value if isinstance(quota_type, QuotaType) else quota_type

    await ensure_brand_quota(brand_id, session)
    now = utcnow()
    result = await session.execute(
        update(BrandQuota)
        .where(BrandQuota.brand_id == brand_id)
        .values(
            {
                limit_name: limit_col + amount,
                "last_topped_up_at": now,
                "last_topped_up_by": performed_by,
                "updated_at": now,
            }
        )
        .returning(limit_col)
        .execution_options(synchronize_session=False)
    )
    new_limit = result.scalar_one()

    session.add(
        QuotaTransaction(
            brand_id=brand_id,
            transaction_type=TransactionType.TOPUP.value,
            quota_type=type_value,
            amount=amount,
            previous_value=new_limit - amount,
            new_value=new_limit,
            performed_by=performed_by,
            description=description,
        )
    )
    await session.flush()

    log.info(
        "quota.topped_up",
        brand_id=str(brand_id),
        quota_type=type_value,
        amount=amount,
        limit=new_limit,
        performed_by=str(performed_by) if performed_by else None,
    )
    return new_limit
