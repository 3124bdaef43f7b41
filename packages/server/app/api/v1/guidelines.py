"""
Brand guidelines endpoints.

GET    /api/v1/brands/{brandId}/guidelines           — Approved guidelines (200 / 202 / 404)
DELETE /api/v1/brands/{brandId}/guidelines           — Archive approved guidelines
GET    /api/v1/brands/{brandId}/guidelines/approve   — Guidelines awaiting review
POST   /api/v1/brands/{brandId}/guidelines/approve   — Approve, optionally with edits
POST   /api/v1/brands/{brandId}/guidelines/update    — Edit approved guidelines
POST   /api/v1/brands/{brandId}/guidelines/upload    — Upload a document and extract guidelines
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.ai import GuidelinesExtractor, get_extractor
from app.core.auth import BrandContext, require_brand_member, require_brand_permission
from app.core.config import get_settings
from app.core.database import get_session
from app.core.permissions import BRAND_EDIT, DOCUMENTS_UPLOAD
from app.core.storage import StorageBackend, get_storage
from app.services import guidelines as guidelines_service
from brandhub_shared.schemas.common import SuccessResponse
from brandhub_shared.schemas.guidelines import (
    GuidelinesApproveRequest,
    GuidelinesRead,
    GuidelinesResponse,
    GuidelinesStatusResponse,
    GuidelinesUpdateRequest,
    GuidelinesUploadResponse,
)

router = APIRouter()


@router.get("", response_model=GuidelinesResponse)
async def get_guidelines(
    ctx: BrandContext = Depends(require_brand_member),
    session: AsyncSession = Depends(get_session),
):
    """Approved guidelines; 202 while a draft awaits review, 404 when none exist."""
    approved = await guidelines_service.get_approved_guidelines(ctx.brand_id, session)
    if approved is not None:
        return GuidelinesResponse(guidelines=GuidelinesRead.model_validate(approved))

    existing = await guidelines_service.get_guidelines(ctx.brand_id, session)
    if existing is not None:
        body = GuidelinesStatusResponse(
            has_guidelines=True,
            status=existing.status,
            message=(
                f"Guidelines exist but are in '{existing.status}' status. "
                "Please approve them first."
            ),
        )
        return JSONResponse(status_code=202, content=body.model_dump(mode="json", by_alias=True))

    body = GuidelinesStatusResponse(
        has_guidelines=False,
        message="No brand guidelines found. Please upload a brand guidelines document.",
    )
    return JSONResponse(status_code=404, content=body.model_dump(mode="json", by_alias=True))


@router.delete("", response_model=SuccessResponse)
async def archive_guidelines(
    ctx: BrandContext = Depends(require_brand_permission(BRAND_EDIT)),
    session: AsyncSession = Depends(get_session),
):
    if not await guidelines_service.archive_guidelines(ctx.brand_id, session):
        raise HTTPException(status_code=404, detail="No approved guidelines to archive")
    return SuccessResponse(message="Brand guidelines archived")


@router.get("/approve", response_model=GuidelinesResponse)
async def get_pending_guidelines(
    ctx: BrandContext = Depends(require_brand_member),
    session: AsyncSession = Depends(get_session),
):
    pending = await guidelines_service.get_pending_guidelines(ctx.brand_id, session)
    return GuidelinesResponse(guidelines=GuidelinesRead.model_validate(pending))


@router.post("/approve", response_model=GuidelinesResponse)
async def approve_guidelines(
    body: GuidelinesApproveRequest,
    ctx: BrandContext = Depends(require_brand_permission(BRAND_EDIT)),
    session: AsyncSession = Depends(get_session),
):
    approved = await guidelines_service.approve_guidelines(
        ctx.brand_id, body.guidelines_id, ctx.user_id, session, body.modifications
    )
    return GuidelinesResponse(
        guidelines=GuidelinesRead.model_validate(approved),
        message="Brand guidelines approved and activated",
    )


@router.post("/update", response_model=GuidelinesResponse)
async def update_guidelines(
    body: GuidelinesUpdateRequest,
    ctx: BrandContext = Depends(require_brand_permission(BRAND_EDIT)),
    session: AsyncSession = Depends(get_session),
):
    updated = await guidelines_service.update_approved_guidelines(
        ctx.brand_id, body.guidelines, session
    )
    return GuidelinesResponse(
        guidelines=GuidelinesRead.model_validate(updated),
        message="Brand guidelines updated",
    )


@router.post("/upload", response_model=GuidelinesUploadResponse)
async def upload_guidelines(
    file: Optional[UploadFile] = File(None),
    ctx: BrandContext = Depends(require_brand_permission(DOCUMENTS_UPLOAD)),
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
    extractor: GuidelinesExtractor = Depends(get_extractor),
):
    """Store the document, extract guidelines with the AI provider, queue them for review."""
    data = await file.read() if file is not None else None
    guidelines, path = await guidelines_service.upload_and_extract(
        ctx.brand_id,
        ctx.user_id,
        file.filename if file is not None else None,
        file.content_type if file is not None else None,
        data,
        session,
        storage=storage,
        extractor=extractor,
        max_size_mb=get_settings().max_upload_mb,
    )
    return GuidelinesUploadResponse(
        guidelines_id=guidelines.id,
        status=guidelines.status,
        file_path=path,
        message="Guidelines extracted. Please review and approve them.",
    )
