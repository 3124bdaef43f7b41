"""
Authentication endpoints.

- Email/Password registration & login
- JWT session management (refresh, logout)
- Current user profile with brand memberships
"""

from __future__ import annotations

import re
import secrets
import uuid
from typing import Optional

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import (
    AuthenticatedUser,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    get_authenticated_user,
    hash_password,
    is_jwt_revoked,
    revoke_jwt,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.middleware import CSRF_COOKIE, SESSION_COOKIE
from app.core.permissions import get_role_display_name
from app.core.realtime import manager
from app.models.brand import Brand
from app.models.brand_user import BrandUser
from app.models.user import User
from app.services.quotas import ensure_brand_quota
from brandhub_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}

MIN_PASSWORD_LENGTH = 8


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


def _slugify(name: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "brand"
    return f"{base[:40]}-{secrets.token_hex(3)}"


# ---------------------------------------------------------------------------
# Email/Password Registration
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    brand_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    user_id: str
    email: str
    message: str
    brand_id: Optional[str] = None


class MembershipInfo(BaseModel):
    brand_id: str
    brand_name: str
    role: str
    role_display_name: str


class MeResponse(BaseModel):
    user_id: str
    email: str
    name: str
    brands: list[MembershipInfo]


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user. The user owns a freshly created brand with default quotas."""
    email = body.email.lower()
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    user = User(
        id=uuid.uuid4(),
        email=email,
        full_name=body.full_name,
        password_hash=hash_password(body.password),
    )
    session.add(user)

    brand_name = body.brand_name or f"{user.display_name}'s Brand"
    brand = Brand(id=uuid.uuid4(), name=brand_name, slug=_slugify(brand_name))
    session.add(brand)
    await session.flush()

    session.add(BrandUser(user_id=user.id, brand_id=brand.id, role=Role.OWNER.value))
    await session.flush()
    await ensure_brand_quota(brand.id, session)

    token, _jti = create_jwt(user_id=user.id)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("user.registered", user_id=str(user.id), brand_id=str(brand.id))
    return AuthResponse(
        user_id=str(user.id),
        email=email,
        brand_id=str(brand.id),
        message="Registration successful",
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    email = body.email.lower()
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=email, reason="bad_password")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token, _jti = create_jwt(user_id=user.id)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("auth.login_success", user_id=str(user.id))
    return AuthResponse(user_id=str(user.id), email=user.email, message="Login successful")


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.post("/refresh")
async def refresh_session(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Refresh the current JWT session by issuing a new token."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="No active session")

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")

    user = await session.get(User, uuid.UUID(payload["sub"]))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    new_token, _new_jti = create_jwt(user_id=user.id)
    if jti:
        await revoke_jwt(jti)
        await manager.close_for_revoked_jwt(jti)

    _set_session_cookies(response, new_token, generate_csrf_token())
    return {"message": "Session refreshed"}


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        try:
            jti = decode_jwt(token).get("jti")
        except jwt.PyJWTError:
            jti = None  # already invalid, just clear cookies
        if jti:
            await revoke_jwt(jti)
            await manager.close_for_revoked_jwt(jti)

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}


@router.get("/me", response_model=MeResponse)
async def me(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """The caller's profile and brand memberships, oldest membership first."""
    result = await session.execute(
        select(BrandUser, Brand)
        .join(Brand, Brand.id == BrandUser.brand_id)
        .where(BrandUser.user_id == auth.user_id)
        .order_by(BrandUser.created_at)
    )
    return MeResponse(
        user_id=str(auth.user_id),
        email=auth.email,
        name=auth.display_name,
        brands=[
            MembershipInfo(
                brand_id=str(brand.id),
                brand_name=brand.name,
                role=bu.role,
                role_display_name=get_role_display_name(bu.role),
            )
            for bu, brand in result.all()
        ],
    )
