"""Brand membership schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from .common import CamelModel


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RoleChangeRequest(CamelModel):
    """Change a member's role.

    Fields are optional so that missing values surface as 400s from the
    service, in the same precedence order as every other precondition.
    """
    member_id: Optional[uuid.UUID] = None
    new_role: Optional[str] = None
    brand_id: Optional[uuid.UUID] = None


class TeamInviteRequest(CamelModel):
    """Invite someone to the caller's brand by email."""
    email: Optional[str] = None
    brand_id: Optional[uuid.UUID] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MemberResponse(CamelModel):
    user_id: uuid.UUID
    email: str
    name: str
    role: str
    role_display_name: str
    joined_at: datetime


class MemberListResponse(CamelModel):
    brand_id: uuid.UUID
    data: list[MemberResponse]


class TeamInviteResponse(CamelModel):
    success: bool = True
    message: str
    needs_signup: bool = False
