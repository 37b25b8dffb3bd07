"""Auth routes: bootstrap registration, login, refresh, profile.

Route overview:
  POST /register  — create the first administrator (only while no users exist)
  POST /login     — email + password login
  POST /refresh   — exchange a refresh token for new access + refresh tokens
  GET  /me        — return the current user profile + permissions

All further users are created by an administrator via POST /api/users.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import get_current_user
from clinicdesk.auth.jwt import create_access_token, create_refresh_token, decode_token
from clinicdesk.auth.password import hash_password, verify_password
from clinicdesk.auth.permissions import resolve_permissions
from clinicdesk.database import get_db
from clinicdesk.models.user import User, UserRole
from clinicdesk.schemas.auth import (
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def _build_user_out(user: User, permissions: list[str]) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        role=user.role.value,
        is_active=user.is_active,
        permissions=permissions,
        assigned_clinics=user.assigned_clinics,
    )


def _build_token_response(user: User) -> TokenResponse:
    permissions = resolve_permissions(user.role.value, user.custom_permissions)
    clinics = None if user.role == UserRole.ADMINISTRATOR else user.assigned_clinics
    return TokenResponse(
        access_token=create_access_token(
            user_id=user.id,
            role=user.role.value,
            permissions=permissions,
            clinics=clinics,
        ),
        refresh_token=create_refresh_token(user_id=user.id, role=user.role.value),
        user=_build_user_out(user, permissions),
    )


# ── POST /register ──────────────────────────────────────────

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Bootstrap the first administrator of a fresh installation."""
    count = (await db.execute(select(func.count(User.id)))).scalar() or 0
    if count:
        raise HTTPException(
            status_code=403,
            detail="Registration is closed; ask an administrator for an account",
        )

    user = User(
        email=body.email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
        phone=body.phone,
        role=UserRole.ADMINISTRATOR,
        is_active=True,
    )
    db.add(user)
    await db.flush()

    logger.info(f"Bootstrap administrator registered: {user.email}")
    return _build_token_response(user)


# ── POST /login ──────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Email + password login. Returns JWT with role, permissions and clinics."""
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.hashed_password):
        logger.warning(f"Failed login for {body.email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account deactivated")

    user.last_login_at = datetime.utcnow()
    await db.flush()
    return _build_token_response(user)


# ── POST /refresh ────────────────────────────────────────────

@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Issue fresh tokens; permissions are re-read from the database."""
    payload = decode_token(body.refresh_token)
    if payload.get("type") != "refresh" or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    result = await db.execute(select(User).where(User.id == payload["sub"]))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return _build_token_response(user)


# ── GET /me ──────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    permissions = resolve_permissions(user.role.value, user.custom_permissions)
    return _build_user_out(user, permissions)
