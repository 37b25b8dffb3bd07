"""Activity feed: who did what to which record."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import require_permission, visible_clinic_ids
from clinicdesk.database import get_db
from clinicdesk.models.activity_log import ActivityLog
from clinicdesk.models.user import User
from clinicdesk.schemas.activity import ActivityOut

router = APIRouter()


@router.get("/", response_model=list[ActivityOut])
async def list_activity(
    entity_type: str | None = Query(None),
    entity_id: str | None = Query(None),
    user_id: str | None = Query(None),
    clinic_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("activity.read")),
):
    """Most recent entries first."""
    query = select(ActivityLog)
    if entity_type:
        query = query.where(ActivityLog.entity_type == entity_type)
    if entity_id:
        query = query.where(ActivityLog.entity_id == entity_id)
    if user_id:
        query = query.where(ActivityLog.user_id == user_id)
    if clinic_id:
        query = query.where(ActivityLog.clinic_id == clinic_id)

    allowed = visible_clinic_ids(user)
    if allowed is not None:
        query = query.where(or_(ActivityLog.clinic_id.in_(allowed), ActivityLog.clinic_id.is_(None)))

    result = await db.execute(query.order_by(ActivityLog.created_at.desc()).limit(limit))
    return [ActivityOut.model_validate(a) for a in result.scalars().all()]
