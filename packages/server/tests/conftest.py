"""
Shared fixtures: an in-memory aiosqlite database standing in for Postgres,
a mocked Redis client, row factories and an ASGI test client.
"""

from __future__ import annotations

import os

os.environ.setdefault("BH_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("BH_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("BH_LOG_FORMAT", "console")

import uuid
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  populate metadata
from app.core import database
from app.core import redis as redis_module
from app.core.auth import create_jwt
from app.core.storage import LocalStorage, get_storage
from app.main import app as fastapi_app
from app.models.brand import Brand
from app.models.brand_user import BrandUser
from app.models.conversation import Conversation, ConversationShare
from app.models.message import Message
from app.models.project import Project
from app.models.quota import BrandQuota
from app.models.user import User


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine, monkeypatch):
    """Point get_session / get_session_context at the test database."""
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(database, "async_session_factory", factory)
    return factory


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Redis replaced by an AsyncMock: nothing revoked, publishes succeed."""
    client = AsyncMock()
    client.exists = AsyncMock(return_value=0)
    client.sismember = AsyncMock(return_value=False)
    client.publish = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    client.pubsub = MagicMock(return_value=AsyncMock())
    monkeypatch.setattr(redis_module, "_redis_pool", client)
    return client


@pytest.fixture
def storage(tmp_path):
    store = LocalStorage(root=tmp_path / "storage", public_base_url="http://test/storage")
    fastapi_app.dependency_overrides[get_storage] = lambda: store
    yield store
    fastapi_app.dependency_overrides.pop(get_storage, None)


@pytest.fixture
async def client(session_factory):
    async with AsyncClient(
        transport=ASGITransport(app=fastapi_app), base_url="http://test"
    ) as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    token, _jti = create_jwt(user.id)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class Factory:
    """Creates committed rows in the test database."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(self, email: Optional[str] = None, full_name: Optional[str] = "Test User") -> User:
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        return await self._save(User(email=email, full_name=full_name))

    async def brand(self, name: str = "Acme") -> Brand:
        return await self._save(Brand(name=name, slug=f"acme-{uuid.uuid4().hex[:8]}"))

    async def member(self, user: User, brand: Brand, role: str = "user") -> BrandUser:
        return await self._save(BrandUser(user_id=user.id, brand_id=brand.id, role=role))

    async def quota(self, brand: Brand, **limits) -> BrandQuota:
        return await self._save(BrandQuota(brand_id=brand.id, **limits))

    async def conversation(
        self,
        owner: User,
        brand: Brand,
        title: str = "Launch plan",
        project: Optional[Project] = None,
        archived: bool = False,
    ) -> Conversation:
        return await self._save(
            Conversation(
                brand_id=brand.id,
                user_id=owner.id,
                title=title,
                project_id=project.id if project else None,
                archived=archived,
            )
        )

    async def share(
        self,
        conversation: Conversation,
        shared_with: User,
        permission: str = "read",
        status: str = "accepted",
    ) -> ConversationShare:
        return await self._save(
            ConversationShare(
                conversation_id=conversation.id,
                brand_id=conversation.brand_id,
                shared_by=conversation.user_id,
                shared_with=shared_with.id,
                permission=permission,
                status=status,
            )
        )

    async def message(
        self,
        conversation: Conversation,
        content: str,
        role: str = "user",
        author: Optional[User] = None,
    ) -> Message:
        return await self._save(
            Message(
                conversation_id=conversation.id,
                role=role,
                content=content,
                user_id=author.id if author else None,
            )
        )

    async def project(self, owner: User, brand: Brand, name: str = "Spring campaign") -> Project:
        return await self._save(Project(brand_id=brand.id, user_id=owner.id, name=name))


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)
