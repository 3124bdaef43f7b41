"""
Project share endpoints.

POST   /api/v1/project-shares                   — Share a project (owner only)
GET    /api/v1/project-shares?projectId=        — Shares on a project the caller owns
GET    /api/v1/project-shares?myShares=true     — Shares the caller received
PATCH  /api/v1/project-shares                   — Accept / decline (recipient)
DELETE /api/v1/project-shares?shareId=          — Revoke (sharer)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import projects as project_service
from brandhub_shared.schemas.common import SuccessResponse
from brandhub_shared.schemas.sharing import (
    ProjectShareCreate,
    ProjectShareCreateResponse,
    ProjectShareList,
    ShareRespondRequest,
    ShareRespondResponse,
)

router = APIRouter()


@router.post("", response_model=ProjectShareCreateResponse)
async def create_shares(
    body: ProjectShareCreate,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.create_project_shares(auth.user, body, session, background_tasks)


@router.get("", response_model=ProjectShareList)
async def list_shares(
    projectId: Optional[uuid.UUID] = Query(None),
    myShares: bool = Query(False),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    shares = await project_service.list_project_shares(
        auth.user, session, project_id=projectId, my_shares=myShares
    )
    return ProjectShareList(shares=shares)


@router.patch("", response_model=ShareRespondResponse)
async def respond_to_share(
    body: ShareRespondRequest,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.respond_to_project_share(
        auth.user, body.share_id, body.action, session, background_tasks
    )


@router.delete("", response_model=SuccessResponse)
async def revoke_share(
    shareId: Optional[uuid.UUID] = Query(None),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await project_service.revoke_project_share(auth.user, shareId, session)
    return SuccessResponse(message="Share revoked")
