"""
Authentication and Authorization for Brand Hub.

Supports:
- Email/Password accounts with bcrypt hashes
- JWT sessions (cookie or bearer) with a Redis revocation list
- Brand membership resolution for tenant-scoped routes
- Permission-based authorization dependencies
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, HTTPException, Query, Request, WebSocket
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.middleware import SESSION_COOKIE
from app.core.permissions import has_permission
from app.core.redis import get_redis
from app.models.brand_user import BrandUser
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()

auth_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int | None = None) -> None:
    redis = await get_redis()
    ttl = ttl_seconds or settings.jwt_expire_minutes * 60
    await redis.setex(f"jwt:revoked:{jti}", ttl, "1")


async def is_jwt_revoked(jti: str) -> bool:
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """Container for the authenticated caller."""

    def __init__(self, user: User, jti: str | None = None):
        self.user = user
        self.user_id = user.id
        self.email = user.email
        self.jti = jti

    @property
    def display_name(self) -> str:
        return self.user.display_name


async def authenticate_token(token: str, session: AsyncSession) -> AuthenticatedUser:
    """Resolve a session JWT to its user, rejecting revoked or stale tokens."""
    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return AuthenticatedUser(user=user, jti=jti)


async def get_authenticated_user(
    request: Request,
    authorization: Optional[str] = Depends(auth_header),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Main authentication dependency. Tries the bearer header, then the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        auth_user = await authenticate_token(authorization[7:].strip(), session)
        request.state.auth = auth_user
        return auth_user

    token = request.cookies.get(SESSION_COOKIE)
    if token:
        auth_user = await authenticate_token(token, session)
        request.state.auth = auth_user
        return auth_user

    raise HTTPException(status_code=401, detail="Authentication required")


async def get_authenticated_user_ws(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """WebSocket authentication: ``token`` query param or the session cookie."""
    if token:
        return await authenticate_token(token, session)

    cookie_token = websocket.cookies.get(SESSION_COOKIE)
    if cookie_token:
        return await authenticate_token(cookie_token, session)

    raise HTTPException(status_code=401, detail="Authentication required")


# ---------------------------------------------------------------------------
# Brand membership
# ---------------------------------------------------------------------------

async def get_membership(
    user_id: uuid.UUID, brand_id: uuid.UUID, session: AsyncSession
) -> BrandUser | None:
    result = await session.execute(
        select(BrandUser).where(BrandUser.user_id == user_id, BrandUser.brand_id == brand_id)
    )
    return result.scalar_one_or_none()


async def resolve_caller_membership(
    user_id: uuid.UUID,
    session: AsyncSession,
    brand_id: uuid.UUID | None = None,
) -> BrandUser | None:
    """The caller's membership in ``brand_id``, or their earliest membership when omitted."""
    if brand_id is not None:
        return await get_membership(user_id, brand_id, session)
    result = await session.execute(
        select(BrandUser)
        .where(BrandUser.user_id == user_id)
        .order_by(BrandUser.created_at, BrandUser.brand_id)
        .limit(1)
    )
    return result.scalar_one_or_none()


class BrandContext:
    """An authenticated caller acting inside one brand."""

    def __init__(self, auth: AuthenticatedUser, membership: BrandUser):
        self.auth = auth
        self.user = auth.user
        self.user_id = auth.user_id
        self.membership = membership
        self.brand_id = membership.brand_id
        self.role = membership.role

    def can(self, permission: str) -> bool:
        return has_permission(self.role, permission)


async def require_brand_member(
    brandId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
) -> BrandContext:
    """Any brand member. Non-members get the same 404 as a missing brand."""
    membership = await get_membership(auth.user_id, brandId, session)
    if not membership:
        raise HTTPException(status_code=404, detail="Brand not found")
    return BrandContext(auth, membership)


def require_brand_permission(permission: str):
    """Dependency factory: brand member whose role grants ``permission``."""

    async def dependency(
        ctx: BrandContext = Depends(require_brand_member),
    ) -> BrandContext:
        if not ctx.can(permission):
            log.info(
                "auth.permission_denied",
                user_id=str(ctx.user_id),
                brand_id=str(ctx.brand_id),
                role=ctx.role,
                permission=permission,
            )
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return ctx

    return dependency


async def get_optional_user(
    request: Request,
    authorization: Optional[str] = Depends(auth_header),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser | None:
    """Like get_authenticated_user, but anonymous callers get None instead of 401."""
    if not (authorization and authorization.startswith("Bearer ")) and not request.cookies.get(
        SESSION_COOKIE
    ):
        return None
    return await get_authenticated_user(request, authorization, session)
