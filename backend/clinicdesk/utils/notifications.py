"""Clinic notifications raised alongside writes.

Like the activity log, the row joins the caller's session and commits
with the change that raised it:

    await notify(db, user, order, "created", title="New order",
                 message="ORD-20260302-001 for Jane Doe ($220.00)")
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.models.notification import Notification
from clinicdesk.models.user import User
from clinicdesk.utils.activity import describe_entity

NOTIFICATION_TYPES = ("info", "success", "warning", "error")
NOTIFICATION_CATEGORIES = ("payment", "order", "appointment")


async def notify(
    db: AsyncSession,
    user: User,
    entity: Any,
    action: str,
    *,
    title: str,
    message: str,
    type: str = "info",
    details: dict | None = None,
) -> Notification:
    described = describe_entity(entity)
    if described["entity_type"] not in NOTIFICATION_CATEGORIES:
        raise ValueError(f"No notification category for {described['entity_type']}")
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")

    notification = Notification(
        clinic_id=described["clinic_id"],
        type=type,
        category=described["entity_type"],
        action=action,
        title=title,
        message=message,
        entity_type=described["entity_type"],
        entity_id=described["entity_id"],
        details=details,
        read=False,
        read_by=[],
        created_by=user.id,
    )
    db.add(notification)
    return notification
