"""
Authentication endpoints.

- Email/Password registration & login
- JWT session management (logout, me)

Tokens are returned in the body for Bearer clients and set as an
httponly cookie (plus a readable CSRF cookie) for browsers.
"""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.api.v1.users import to_user_read
from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    AuthenticatedUser,
    authorization_header,
    create_jwt,
    decode_jwt,
    extract_token,
    generate_csrf_token,
    get_current_user,
    hash_password,
    revoke_jwt,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.models.user import User
from taskdesk_shared.schemas.common import MessageResponse
from taskdesk_shared.schemas.users import AuthResponse, LoginRequest, RegisterRequest, UserRead

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


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


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password and start a session."""
    email = body.email.lower()
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=email,
        first_name=body.first_name,
        last_name=body.last_name,
        avatar=body.avatar,
        password_hash=hash_password(body.password),
    )
    session.add(user)
    await session.flush()

    token, _jti = create_jwt(user.id)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("user.registered", user_id=str(user.id), email=email)
    return AuthResponse(
        user_id=str(user.id),
        email=email,
        access_token=token,
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

    token, _jti = create_jwt(user.id)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("auth.login_success", user_id=str(user.id), email=email)
    return AuthResponse(
        user_id=str(user.id),
        email=email,
        access_token=token,
        message="Login successful",
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    authorization: str | None = Depends(authorization_header),
):
    """Revoke the current token and clear the session cookies."""
    token = extract_token(request, authorization)
    if token:
        try:
            jti = decode_jwt(token).get("jti")
        except jwt.PyJWTError:
            jti = None  # already invalid, nothing to revoke
        if jti:
            await revoke_jwt(jti)

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserRead)
async def me(auth: AuthenticatedUser = Depends(get_current_user)):
    """The authenticated user's profile."""
    return to_user_read(auth.user)
