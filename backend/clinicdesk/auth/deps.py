"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user        → decode JWT, load user from DB, return User
  require_permission(...) → restrict to specific granular permissions

Helpers:
  ensure_clinic_access()  → 403 unless the user may work in a clinic
  visible_clinic_ids()    → clinic IDs a user is scoped to (None = all)

Permissions and clinic scope are both read from the access token claims,
so a change made by an administrator applies from the user's next login
or token refresh.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.jwt import decode_token
from clinicdesk.auth.permissions import has_permission
from clinicdesk.database import get_db
from clinicdesk.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT, load the user, and return it.

    Also stashes the decoded payload on the user object as `_token_payload`
    so downstream deps can read claims (permissions, clinics) without
    re-decoding.
    """
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    user._token_payload = payload  # type: ignore[attr-defined]
    return user


def require_permission(*perms: str):
    """Dependency factory — restrict to users who hold ALL listed permissions.

    Reads permissions from the JWT claims, so this is a zero-DB-hit check.

    Usage:
        @router.post("/orders")
        async def create_order(user: User = Depends(require_permission("order.write"))):
            ...
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        payload: dict = getattr(user, "_token_payload", {})
        user_perms: list[str] = payload.get("permissions", [])

        missing = [p for p in perms if not has_permission(user_perms, p)]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(missing)}",
            )
        return user

    return _check


def visible_clinic_ids(user: User) -> list[str] | None:
    """Clinic IDs the user is limited to, or None for every clinic.

    Taken from the `clinics` claim; tokens for administrators and
    unscoped users omit it.
    """
    payload = getattr(user, "_token_payload", None)
    if payload is None:
        raise RuntimeError("visible_clinic_ids() needs a user from get_current_user")
    return payload.get("clinics")


def ensure_clinic_access(user: User, clinic_id: str) -> None:
    allowed = visible_clinic_ids(user)
    if allowed is not None and clinic_id not in allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No access to this clinic",
        )
