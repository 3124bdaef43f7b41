"""
Shared-with-me listings.

GET  /api/v1/shared-conversation?conversationId=           — A conversation shared with the caller
GET  /api/v1/shared-conversation/list                      — All accepted, non-archived shares
GET  /api/v1/shared-conversation/messages?conversationId=  — Raw message rows
GET  /api/v1/shared-projects/list                          — Shared projects and their conversations
POST /api/v1/share-message                                 — Send a message to teammates
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import conversations as conversation_service
from app.services import projects as project_service
from brandhub_shared.schemas.common import SuccessResponse
from brandhub_shared.schemas.sharing import (
    ConversationRead,
    ProjectRead,
    SharedConversationList,
    SharedConversationResponse,
    SharedMessagesResponse,
    SharedProjectList,
    ShareMessageRequest,
)

router = APIRouter()


@router.get("/shared-conversation", response_model=SharedConversationResponse)
async def get_shared_conversation(
    conversationId: uuid.UUID = Query(...),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    conversation = await conversation_service.get_shared_conversation(
        conversationId, auth.user, session
    )
    return SharedConversationResponse(conversation=ConversationRead.model_validate(conversation))


@router.get("/shared-conversation/list", response_model=SharedConversationList)
async def list_shared_conversations(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    conversations = await conversation_service.list_shared_conversations(auth.user, session)
    return SharedConversationList(
        conversations=[ConversationRead.model_validate(c) for c in conversations]
    )


@router.get("/shared-conversation/messages", response_model=SharedMessagesResponse)
async def get_shared_messages(
    conversationId: uuid.UUID = Query(...),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    messages = await conversation_service.get_shared_messages(conversationId, auth.user, session)
    return SharedMessagesResponse(messages=messages)


@router.get("/shared-projects/list", response_model=SharedProjectList)
async def list_shared_projects(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    projects, conversations = await project_service.list_shared_projects(auth.user, session)
    return SharedProjectList(
        projects=[ProjectRead.model_validate(p) for p in projects],
        conversations=[ConversationRead.model_validate(c) for c in conversations],
    )


@router.post("/share-message", response_model=SuccessResponse)
async def share_message(
    body: ShareMessageRequest,
    background_tasks: BackgroundTasks,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    count = await conversation_service.share_message(
        auth.user, body.content, body.user_ids, session, background_tasks
    )
    noun = "member" if count == 1 else "members"
    return SuccessResponse(message=f"Message shared with {count} team {noun}")
