"""
Collaborative conversation endpoints.

GET  /api/v1/collaborative-messages?conversationId=  — Messages for owner or accepted collaborator
POST /api/v1/collaborative-messages                  — Post as owner or write collaborator
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import conversations as conversation_service
from brandhub_shared.schemas.sharing import (
    CollaborativeMessageCreate,
    CollaborativeMessagesResponse,
)

router = APIRouter()


@router.get("", response_model=CollaborativeMessagesResponse)
async def get_collaborative_messages(
    conversationId: uuid.UUID = Query(...),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    return await conversation_service.get_collaborative_messages(
        conversationId, auth.user, session
    )


@router.post("", status_code=201)
async def post_collaborative_message(
    body: CollaborativeMessageCreate,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Append a message and push it to the other participants."""
    message = await conversation_service.post_collaborative_message(
        body.conversation_id, body.content, auth.user, session, background_tasks
    )
    return {"success": True, "message": message}
