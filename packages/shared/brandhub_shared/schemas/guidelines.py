"""
Brand guidelines schemas.

Covers: the structured guideline sections (voice, copy, visual, messaging),
the guidelines record as returned by the API, and approval requests.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from .common import CamelModel, GuidelinesStatus


# ---------------------------------------------------------------------------
# Guideline sections
# ---------------------------------------------------------------------------

class VoiceGuidelines(CamelModel):
    personality: list[str] = Field(default_factory=list)
    tone: Optional[str] = None
    write_as: Optional[str] = None
    audience_level: Optional[str] = None


class CopyRule(CamelModel):
    rule: str
    example: Optional[str] = None
    why: Optional[str] = None
    bad_example: Optional[str] = None
    good_example: Optional[str] = None


class WordChoice(CamelModel):
    avoid: str
    prefer: str


class CopyGuidelines(CamelModel):
    dos: list[CopyRule] = Field(default_factory=list)
    donts: list[CopyRule] = Field(default_factory=list)
    word_choices: list[WordChoice] = Field(default_factory=list)
    phrases: dict[str, list[str]] = Field(default_factory=dict)


class VisualGuidelines(CamelModel):
    colors: dict[str, Any] = Field(default_factory=dict)
    typography: dict[str, Any] = Field(default_factory=dict)
    imagery: dict[str, Any] = Field(default_factory=dict)
    logo: dict[str, Any] = Field(default_factory=dict)


class MessagingGuidelines(CamelModel):
    pillars: list[str] = Field(default_factory=list)
    value_proposition: Optional[str] = None
    tagline: Optional[str] = None
    boilerplate: Optional[str] = None


class GuidelineSections(CamelModel):
    """The four sections an extraction produces and a reviewer may edit."""
    voice: VoiceGuidelines = Field(default_factory=VoiceGuidelines)
    copy_guidelines: CopyGuidelines = Field(default_factory=CopyGuidelines)
    visual_guidelines: VisualGuidelines = Field(default_factory=VisualGuidelines)
    messaging: MessagingGuidelines = Field(default_factory=MessagingGuidelines)


# ---------------------------------------------------------------------------
# Records & responses
# ---------------------------------------------------------------------------

class GuidelinesRead(CamelModel):
    id: uuid.UUID
    brand_id: uuid.UUID
    status: GuidelinesStatus
    source_document_path: Optional[str] = None
    voice: dict[str, Any] = Field(default_factory=dict)
    copy_guidelines: dict[str, Any] = Field(default_factory=dict)
    visual_guidelines: dict[str, Any] = Field(default_factory=dict)
    messaging: dict[str, Any] = Field(default_factory=dict)
    extracted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class GuidelinesResponse(CamelModel):
    success: bool = True
    guidelines: GuidelinesRead
    message: Optional[str] = None


class GuidelinesStatusResponse(CamelModel):
    """Returned with 202 / 404 when no approved guidelines exist."""
    success: bool = False
    has_guidelines: bool
    status: Optional[GuidelinesStatus] = None
    message: str


class GuidelinesModifications(CamelModel):
    voice: Optional[dict[str, Any]] = None
    copy_guidelines: Optional[dict[str, Any]] = None
    visual_guidelines: Optional[dict[str, Any]] = None
    messaging: Optional[dict[str, Any]] = None


class GuidelinesApproveRequest(CamelModel):
    guidelines_id: Optional[uuid.UUID] = None
    modifications: Optional[GuidelinesModifications] = None


class GuidelinesUploadResponse(CamelModel):
    success: bool = True
    guidelines_id: uuid.UUID
    status: GuidelinesStatus
    file_path: str
    message: str


class GuidelinesUpdateRequest(CamelModel):
    guidelines: Optional[GuidelinesModifications] = None
