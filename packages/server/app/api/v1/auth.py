"""
Authentication endpoints.

- Email/Password registration & login
- Access token refresh from the httpOnly refresh cookie
- Logout (refresh token revocation)
"""

from __future__ import annotations

import uuid

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    REFRESH_COOKIE_NAME,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_current_user,
    is_refresh_token_revoked,
    refresh_ttl_seconds,
    revoke_refresh_token,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.models.user import User
from app.services import users as user_service
from kanban_shared.schemas.common import APIResponse
from kanban_shared.schemas.users import AuthResponse, LoginRequest, RegisterRequest, UserPublic

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.refresh_token_expire_days * 24 * 3600,
}


def _issue_tokens(response: Response, user: User) -> AuthResponse:
    """Set the refresh cookie on ``response`` and build the auth payload."""
    refresh_token, _jti = create_refresh_token(user.id)
    response.set_cookie(key=REFRESH_COOKIE_NAME, value=refresh_token, **COOKIE_KWARGS)
    return AuthResponse(
        user=UserPublic.model_validate(user),
        access_token=create_access_token(user.id, user.email, user.role),
    )


# ---------------------------------------------------------------------------
# Email/Password
# ---------------------------------------------------------------------------

@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new account and start a session."""
    user = await user_service.register_user(body, session)
    await session.commit()
    return _issue_tokens(response, user)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password."""
    user = await user_service.authenticate(body.email, body.password, session)
    return _issue_tokens(response, user)


@router.get("/me", response_model=UserPublic)
async def me(user: User = Depends(get_current_user)):
    return user


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.post("/refresh", response_model=AuthResponse)
async def refresh_session(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Exchange the refresh cookie for a new access token (and rotated refresh cookie)."""
    token = request.cookies.get(REFRESH_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="No active session")

    try:
        payload = decode_refresh_token(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if not jti or await is_refresh_token_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")

    user = await session.get(User, uuid.UUID(payload["sub"]))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    await revoke_refresh_token(jti, refresh_ttl_seconds(payload))
    log.info("auth.refreshed", user_id=str(user.id))
    return _issue_tokens(response, user)


@router.post("/logout", response_model=APIResponse)
async def logout(request: Request, response: Response):
    """Revoke the refresh token and clear the cookie."""
    token = request.cookies.get(REFRESH_COOKIE_NAME)
    if token:
        try:
            payload = decode_refresh_token(token)
        except jwt.PyJWTError:
            payload = None  # already unusable, just clear the cookie
        if payload and payload.get("jti"):
            await revoke_refresh_token(payload["jti"], refresh_ttl_seconds(payload))
            log.info("auth.logout", user_id=payload.get("sub"))

    response.delete_cookie(REFRESH_COOKIE_NAME, path="/")
    return APIResponse(message="Logged out")
