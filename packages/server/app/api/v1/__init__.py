"""
API v1 Router

Brand-scoped endpoints are prefixed with /brands/{brandId}; sharing and
notification endpoints are scoped to the authenticated user.
"""

from fastapi import APIRouter
from . import (
    collaborative,
    conversation_shares,
    guidelines,
    invite_links,
    members,
    notifications,
    project_shares,
    quotas,
    realtime,
    shared,
)

router = APIRouter()

# Brand-scoped resources
router.include_router(guidelines.router, prefix="/brands/{brandId}/guidelines", tags=["Guidelines"])
router.include_router(quotas.router, prefix="/brands/{brandId}/quota", tags=["Quotas"])

# Team management
router.include_router(members.router, prefix="/brand-members", tags=["Members"])

# Collaboration & sharing
router.include_router(collaborative.router, prefix="/collaborative-messages", tags=["Collaboration"])
router.include_router(conversation_shares.router, prefix="/conversation-shares", tags=["Sharing"])
router.include_router(invite_links.router, prefix="/conversation-invite-links", tags=["Sharing"])
router.include_router(project_shares.router, prefix="/project-shares", tags=["Sharing"])
router.include_router(shared.router, tags=["Sharing"])

# Notifications
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(realtime.router, prefix="/realtime", tags=["Realtime"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/brands/{brandId}/guidelines",
            "/brands/{brandId}/quota",
            "/brand-members",
            "/collaborative-messages",
            "/conversation-shares",
            "/conversation-invite-links",
            "/project-shares",
            "/shared-conversation",
            "/shared-projects/list",
            "/share-message",
            "/notifications",
            "/realtime/ws",
        ],
    }
