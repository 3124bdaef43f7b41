"""
Brand guidelines service: one guidelines row per brand, moved through
draft → pending_review → approved → archived.

Upload pipeline: validate → store → extract text → meter quota → AI
extraction → upsert as ``pending_review`` for a human to approve.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.ai import ExtractionError, GuidelinesExtractor, estimate_tokens
from app.core.documents import DocumentError, extract_text
from app.core.errors import (
    GENERATION_ERROR,
    INVALID_INPUT,
    MISSING_FILE,
    ApiError,
    config_error,
)
from app.core.storage import (
    GUIDELINE_DOCUMENT_TYPES,
    StorageBackend,
    build_file_path,
    generate_file_name,
    validate_file,
)
from app.models.base import utcnow
from app.models.brand import Brand
from app.models.guidelines import BrandGuidelines
from app.services.quotas import use_quota
from brandhub_shared.schemas.common import GuidelinesStatus, QuotaType
from brandhub_shared.schemas.guidelines import GuidelinesModifications

log = structlog.get_logger()

DOCUMENTS_BUCKET = "brand-documents"
MIN_DOCUMENT_CHARS = 100
REVIEWABLE_STATUSES = (GuidelinesStatus.DRAFT.value, GuidelinesStatus.PENDING_REVIEW.value)

# Browsers often send octet-stream for .md / .docx; fall back to the extension.
EXTENSION_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
}

SECTION_FIELDS = ("voice", "copy_guidelines", "visual_guidelines", "messaging")


def resolve_content_type(filename: str, content_type: Optional[str]) -> Optional[str]:
    if content_type in GUIDELINE_DOCUMENT_TYPES:
        return content_type
    suffix = "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return EXTENSION_TYPES.get(suffix, content_type)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_guidelines(brand_id: uuid.UUID, session: AsyncSession) -> BrandGuidelines | None:
    """The brand's guidelines row in any status."""
    result = await session.execute(
        select(BrandGuidelines).where(BrandGuidelines.brand_id == brand_id)
    )
    return result.scalar_one_or_none()


async def get_approved_guidelines(
    brand_id: uuid.UUID, session: AsyncSession
) -> BrandGuidelines | None:
    result = await session.execute(
        select(BrandGuidelines).where(
            BrandGuidelines.brand_id == brand_id,
            BrandGuidelines.status == GuidelinesStatus.APPROVED.value,
        )
    )
    return result.scalar_one_or_none()


async def get_pending_guidelines(brand_id: uuid.UUID, session: AsyncSession) -> BrandGuidelines:
    result = await session.execute(
        select(BrandGuidelines).where(
            BrandGuidelines.brand_id == brand_id,
            BrandGuidelines.status.in_(REVIEWABLE_STATUSES),
        )
    )
    guidelines = result.scalar_one_or_none()
    if not guidelines:
        raise HTTPException(status_code=404, detail="No pending guidelines found for review")
    return guidelines


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def _apply_modifications(
    guidelines: BrandGuidelines, modifications: Optional[GuidelinesModifications]
) -> None:
    if modifications is None:
        return
    for name in SECTION_FIELDS:
        value = getattr(modifications, name)
        if value is not None:
            setattr(guidelines, name, value)


async def archive_guidelines(brand_id: uuid.UUID, session: AsyncSession) -> bool:
    """Soft-delete the approved guidelines. Returns whether anything was archived."""
    guidelines = await get_approved_guidelines(brand_id, session)
    if guidelines is None:
        return False
    guidelines.status = GuidelinesStatus.ARCHIVED.value
    session.add(guidelines)
    await session.flush()
    log.info("guidelines.archived", brand_id=str(brand_id), guidelines_id=str(guidelines.id))
    return True


async def approve_guidelines(
    brand_id: uuid.UUID,
    guidelines_id: Optional[uuid.UUID],
    approved_by: uuid.UUID,
    session: AsyncSession,
    modifications: Optional[GuidelinesModifications] = None,
) -> BrandGuidelines:
    if guidelines_id is None:
        raise HTTPException(status_code=400, detail="guidelinesId is required")

    guidelines = await session.get(BrandGuidelines, guidelines_id)
    if not guidelines:
        raise HTTPException(status_code=404, detail="Guidelines not found")
    if guidelines.brand_id != brand_id:
        raise HTTPException(status_code=403, detail="Guidelines do not belong to this brand")
    if guidelines.status == GuidelinesStatus.APPROVED.value:
        raise HTTPException(status_code=400, detail="Guidelines are already approved")

    _apply_modifications(guidelines, modifications)
    guidelines.status = GuidelinesStatus.APPROVED.value
    guidelines.approved_by = approved_by
    guidelines.approved_at = utcnow()
    session.add(guidelines)
    await session.flush()

    log.info(
        "guidelines.approved",
        brand_id=str(brand_id),
        guidelines_id=str(guidelines.id),
        approved_by=str(approved_by),
        modified=modifications is not None,
    )
    return guidelines


async def update_approved_guidelines(
    brand_id: uuid.UUID,
    modifications: Optional[GuidelinesModifications],
    session: AsyncSession,
) -> BrandGuidelines:
    if modifications is None:
        raise HTTPException(status_code=400, detail="Guidelines data is required")
    guidelines = await get_approved_guidelines(brand_id, session)
    if guidelines is None:
        raise HTTPException(status_code=404, detail="No approved guidelines to update")
    _apply_modifications(guidelines, modifications)
    session.add(guidelines)
    await session.flush()
    log.info("guidelines.updated", brand_id=str(brand_id), guidelines_id=str(guidelines.id))
    return guidelines


# ---------------------------------------------------------------------------
# Upload & extraction
# ---------------------------------------------------------------------------

async def upload_and_extract(
    brand_id: uuid.UUID,
    uploaded_by: uuid.UUID,
    filename: Optional[str],
    content_type: Optional[str],
    data: Optional[bytes],
    session: AsyncSession,
    *,
    storage: StorageBackend,
    extractor: GuidelinesExtractor,
    max_size_mb: int,
) -> tuple[BrandGuidelines, str]:
    """Run the upload pipeline. Returns (guidelines row, stored file path)."""
    if not filename or data is None:
        raise ApiError(status_code=400, code=MISSING_FILE, message="No file provided")

    content_type = resolve_content_type(filename, content_type)
    validate_file(
        filename,
        content_type,
        len(data),
        max_size_mb=max_size_mb,
        allowed_types=GUIDELINE_DOCUMENT_TYPES,
    )

    if not extractor.configured:
        raise config_error("AI extraction")

    try:
        text = extract_text(data, content_type)
    except DocumentError as exc:
        raise ApiError(
            status_code=400,
            code=INVALID_INPUT,
            message="Could not read the uploaded document",
            details={"filename": filename, "reason": str(exc)},
        )
    if len(text.strip()) < MIN_DOCUMENT_CHARS:
        raise ApiError(
            status_code=400,
            code=INVALID_INPUT,
            message="Document content seems too short. Please ensure the file has readable text.",
            details={"filename": filename, "chars": len(text.strip())},
        )

    brand = await session.get(Brand, brand_id)
    brand_name = brand.name if brand else str(brand_id)

    path = build_file_path(brand_id, "documents", generate_file_name(filename))

    # Metered before the file is stored; rolled back with the request session on failure.
    await use_quota(
        brand_id,
        QuotaType.PROMPT_TOKENS,
        estimate_tokens(text),
        session,
        performed_by=uploaded_by,
        description="Guidelines extraction",
        metadata={"file_path": path},
    )
    await storage.save(DOCUMENTS_BUCKET, path, data, content_type=content_type)

    try:
        extraction = await extractor.extract(text, brand_name)
    except ExtractionError as exc:
        await storage.delete(DOCUMENTS_BUCKET, path)
        log.error("guidelines.extraction_failed", brand_id=str(brand_id), error=str(exc))
        raise ApiError(
            status_code=502,
            code=GENERATION_ERROR,
            message="Failed to extract guidelines",
            details=exc.details if exc.details is not None else str(exc),
        )

    guidelines = await get_guidelines(brand_id, session)
    if guidelines is None:
        guidelines = BrandGuidelines(brand_id=brand_id)

    guidelines.status = GuidelinesStatus.PENDING_REVIEW.value
    guidelines.source_document_path = f"{DOCUMENTS_BUCKET}/{path}"
    guidelines.voice = extraction.voice
    guidelines.copy_guidelines = extraction.copy_guidelines
    guidelines.visual_guidelines = extraction.visual_guidelines
    guidelines.messaging = extraction.messaging
    guidelines.raw_extraction = extraction.raw
    guidelines.extracted_by = uploaded_by
    guidelines.extracted_at = utcnow()
    guidelines.approved_by = None
    guidelines.approved_at = None
    session.add(guidelines)
    await session.flush()

    log.info(
        "guidelines.extracted",
        brand_id=str(brand_id),
        guidelines_id=str(guidelines.id),
        model=extraction.model,
        tokens_used=extraction.tokens_used,
    )
    return guidelines, path
