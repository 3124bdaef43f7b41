"""
Brand quota endpoints.

GET  /api/v1/brands/{brandId}/quota               — Usage per quota type plus storage
POST /api/v1/brands/{brandId}/quota/topup         — Raise a limit (owners only)
GET  /api/v1/brands/{brandId}/quota/transactions  — Audit log
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import BrandContext, require_brand_member, require_brand_permission
from app.core.database import get_session
from app.core.permissions import QUOTA_MANAGE, QUOTA_VIEW
from app.core.storage import StorageBackend, get_storage
from app.models.quota import QuotaTransaction
from app.services import quotas as quota_service
from brandhub_shared.schemas.common import Role
from brandhub_shared.schemas.quotas import (
    QuotaStatus,
    QuotaTopupRequest,
    QuotaTransactionList,
    QuotaTransactionRead,
)

router = APIRouter()


def _to_read(tx: QuotaTransaction) -> QuotaTransactionRead:
    return QuotaTransactionRead(
        id=tx.id,
        transaction_type=tx.transaction_type,
        quota_type=tx.quota_type,
        amount=tx.amount,
        previous_value=tx.previous_value,
        new_value=tx.new_value,
        performed_by=tx.performed_by,
        description=tx.description,
        metadata=tx.meta or {},
        created_at=tx.created_at,
    )


@router.get("", response_model=QuotaStatus)
async def get_quota(
    ctx: BrandContext = Depends(require_brand_member),
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
):
    return await quota_service.get_quota_status(ctx.brand_id, session, storage)


@router.post("/topup", response_model=QuotaStatus)
async def topup_quota(
    body: QuotaTopupRequest,
    ctx: BrandContext = Depends(require_brand_permission(QUOTA_MANAGE)),
    session: AsyncSession = Depends(get_session),
):
    """Raise a quota limit. Recorded as a topup transaction."""
    if ctx.role != Role.OWNER.value:
        raise HTTPException(status_code=403, detail="Only owners can top up quotas")
    await quota_service.topup_quota(
        ctx.brand_id,
        body.quota_type,
        body.amount,
        session,
        performed_by=ctx.user_id,
        description=body.description,
    )
    return await quota_service.get_quota_status(ctx.brand_id, session)


@router.get("/transactions", response_model=QuotaTransactionList)
async def list_transactions(
    quotaType: Optional[str] = Query(None),
    transactionType: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    ctx: BrandContext = Depends(require_brand_permission(QUOTA_VIEW)),
    session: AsyncSession = Depends(get_session),
):
    transactions = await quota_service.list_quota_transactions(
        ctx.brand_id,
        session,
        quota_type=quotaType,
        transaction_type=transactionType,
        limit=limit,
    )
    return QuotaTransactionList(transactions=[_to_read(tx) for tx in transactions])
