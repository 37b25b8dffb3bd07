"""User administration (administrators only).

Endpoints:
    GET    /api/users          List users (filter by role / active)
    GET    /api/users/stats    Counts by role and active state
    POST   /api/users          Create a user
    PATCH  /api/users/{id}     Update role, permissions, clinics, active flag
    DELETE /api/users/{id}     Deactivate a user
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import require_permission
from clinicdesk.auth.password import hash_password
from clinicdesk.auth.permissions import resolve_permissions
from clinicdesk.database import get_db
from clinicdesk.middleware.exceptions import ResourceNotFoundError
from clinicdesk.models.user import User, UserRole
from clinicdesk.schemas.user import UserCreate, UserDetail, UserStats, UserUpdate
from clinicdesk.utils.activity import log_activity

router = APIRouter()


def _user_detail(user: User) -> UserDetail:
    return UserDetail(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        role=user.role.value,
        is_active=user.is_active,
        assigned_clinics=user.assigned_clinics,
        custom_permissions=user.custom_permissions,
        permissions=resolve_permissions(user.role.value, user.custom_permissions),
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


async def _get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user


@router.get("/", response_model=list[UserDetail])
async def list_users(
    role: str | None = Query(None),
    is_active: bool | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_permission("users.read")),
):
    query = select(User).order_by(User.full_name)
    if role:
        try:
            query = query.where(User.role == UserRole(role))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown role: {role}")
    if is_active is not None:
        query = query.where(User.is_active == is_active)
    result = await db.execute(query)
    return [_user_detail(u) for u in result.scalars().all()]


@router.get("/stats", response_model=UserStats)
async def user_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_permission("users.read")),
):
    result = await db.execute(
        select(User.role, User.is_active, func.count(User.id)).group_by(User.role, User.is_active)
    )
    by_role = {r.value: 0 for r in UserRole}
    active = inactive = 0
    for role, is_active, count in result.all():
        by_role[role.value] += count
        if is_active:
            active += count
        else:
            inactive += count
    return UserStats(total=active + inactive, active=active, inactive=inactive, by_role=by_role)


@router.post("/", response_model=UserDetail, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission("users.write")),
):
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=body.email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
        phone=body.phone,
        role=UserRole(body.role),
        is_active=True,
        assigned_clinics=body.assigned_clinics,
        custom_permissions=body.custom_permissions,
        created_by=admin.id,
    )
    db.add(user)
    await db.flush()

    await log_activity(
        db, admin,
        "created",
        entity=user,
        summary=f"Created {user.role.value} account for {user.full_name}",
    )
    return _user_detail(user)


@router.patch("/{user_id}", response_model=UserDetail)
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission("users.write")),
):
    user = await _get_user(db, user_id)
    updates = body.model_dump(exclude_unset=True)

    if user.id == admin.id:
        demoted = updates.get("role") not in (None, UserRole.ADMINISTRATOR.value)
        if demoted or updates.get("is_active") is False:
            raise HTTPException(status_code=400, detail="You cannot demote or deactivate yourself")

    if "password" in updates:
        password = updates.pop("password")
        if password:
            user.hashed_password = hash_password(password)
    if "role" in updates:
        role = updates.pop("role")
        if role:
            user.role = UserRole(role)
    for field, value in updates.items():
        setattr(user, field, value)
    await db.flush()

    await log_activity(
        db, admin,
        "updated",
        entity=user,
        summary=f"Updated user {user.full_name}",
        details={"fields": sorted(body.model_dump(exclude_unset=True, exclude={"password"}))},
    )
    return _user_detail(user)


@router.delete("/{user_id}", response_model=UserDetail)
async def deactivate_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_permission("users.write")),
):
    user = await _get_user(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate yourself")

    user.is_active = False
    await db.flush()
    await log_activity(
        db, admin,
        "deactivated",
        entity=user,
        summary=f"Deactivated user {user.full_name}",
    )
    return _user_detail(user)
