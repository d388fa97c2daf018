"""Authentication endpoints: login, logout, me."""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from officetrack.core.config import Settings
from officetrack.core.dependencies import (
    get_app_settings,
    get_audit_sink,
    get_client_info,
    get_current_user,
    get_db,
    get_token_gate,
)
from officetrack.core.exceptions import Forbidden, Unauthenticated
from officetrack.core.security import TokenGate, verify_password
from officetrack.models.user import User
from officetrack.schemas.auth import LoginRequest, TokenResponse, UserResponse
from officetrack.services.audit import AuditSink, ClientInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ── POST /login ───────────────────────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    gate: TokenGate = Depends(get_token_gate),
    settings: Settings = Depends(get_app_settings),
    audit: AuditSink = Depends(get_audit_sink),
    client: ClientInfo = Depends(get_client_info),
):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.hashed_password):
        raise Unauthenticated("Invalid email or password")

    if not user.is_active:
        raise Forbidden("Account is deactivated")

    token = gate.issue(user.id, user.role)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=not settings.DEBUG,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    logger.info("User %s logged in", user.id)
    await audit.record(
        action="login",
        actor_id=user.id,
        affected_user_id=user.id,
        entity="User",
        entity_id=user.id,
        client=client,
    )
    return TokenResponse(access_token=token, user=UserResponse.model_validate(user))


# ── POST /logout ──────────────────────────────────────────────────────────────


@router.post("/logout")
async def logout(response: Response, settings: Settings = Depends(get_app_settings)):
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return {"success": True, "message": "Logged out"}


# ── GET /me ───────────────────────────────────────────────────────────────────


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Return the current authenticated user's profile."""
    return current_user
