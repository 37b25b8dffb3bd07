"""Clinic notifications.

Endpoints:
    GET    /api/notifications/               List (clinic, read, category)
    GET    /api/notifications/latest         Newest few, for the dropdown
    GET    /api/notifications/unread/count   Unread badge count
    PUT    /api/notifications/read-all       Mark every unread one read
    GET    /api/notifications/{id}           Detail
    PUT    /api/notifications/{id}/read      Mark read
    DELETE /api/notifications/{id}           Dismiss (soft delete)

Any signed-in user may read notifications for the clinics they can see.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import ensure_clinic_access, get_current_user, visible_clinic_ids
from clinicdesk.database import get_db
from clinicdesk.middleware.exceptions import ResourceNotFoundError
from clinicdesk.models.notification import Notification
from clinicdesk.models.user import User
from clinicdesk.schemas.common import PaginatedResponse
from clinicdesk.schemas.notification import MarkAllRead, NotificationOut, UnreadCount

router = APIRouter()


def _scoped(user: User, clinic_id: str | None = None):
    query = select(Notification).where(Notification.is_deleted == False)  # noqa: E712
    if clinic_id:
        ensure_clinic_access(user, clinic_id)
        return query.where(Notification.clinic_id == clinic_id)
    allowed = visible_clinic_ids(user)
    if allowed is not None:
        query = query.where(Notification.clinic_id.in_(allowed))
    return query


async def _load(db: AsyncSession, notification_id: str, user: User) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.is_deleted == False,  # noqa: E712
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise ResourceNotFoundError("Notification", notification_id)
    ensure_clinic_access(user, notification.clinic_id)
    return notification


def _mark_read(notification: Notification, user: User) -> None:
    if user.id not in (notification.read_by or []):
        # Reassign so the JSON column is flagged dirty
        notification.read_by = [*(notification.read_by or []), user.id]
    if not notification.read:
        notification.read = True
        notification.read_at = datetime.utcnow()


@router.get("/", response_model=PaginatedResponse[NotificationOut])
async def list_notifications(
    clinic_id: str | None = Query(None),
    read: bool | None = Query(None),
    category: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    base = _scoped(user, clinic_id)
    if read is not None:
        base = base.where(Notification.read == read)
    if category:
        base = base.where(Notification.category == category)

    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    result = await db.execute(
        base.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
    )
    items = [NotificationOut.model_validate(n) for n in result.scalars().all()]
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/latest", response_model=list[NotificationOut])
async def latest_notifications(
    clinic_id: str | None = Query(None),
    limit: int = Query(2, ge=1, le=20),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        _scoped(user, clinic_id).order_by(Notification.created_at.desc()).limit(limit)
    )
    return [NotificationOut.model_validate(n) for n in result.scalars().all()]


@router.get("/unread/count", response_model=UnreadCount)
async def unread_count(
    clinic_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    unread = _scoped(user, clinic_id).where(Notification.read == False)  # noqa: E712
    count = (await db.execute(select(func.count()).select_from(unread.subquery()))).scalar() or 0
    return UnreadCount(count=count)


@router.put("/read-all", response_model=UnreadCount)
async def mark_all_read(
    body: MarkAllRead | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Returns how many notifications were marked read."""
    query = _scoped(user, body.clinic_id if body else None).where(
        Notification.read == False  # noqa: E712
    )
    result = await db.execute(query)
    unread = result.scalars().all()
    for notification in unread:
        _mark_read(notification, user)
    await db.flush()
    return UnreadCount(count=len(unread))


@router.get("/{notification_id}", response_model=NotificationOut)
async def get_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return NotificationOut.model_validate(await _load(db, notification_id, user))


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification = await _load(db, notification_id, user)
    _mark_read(notification, user)
    await db.flush()
    return NotificationOut.model_validate(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification = await _load(db, notification_id, user)
    notification.is_deleted = True
    await db.flush()
