"""Audit trail for writes.

Every create/update/delete adds one ActivityLog row to the caller's
session, so the entry commits (or rolls back) with the change itself.

Pass the ORM row as ``entity`` and the type, id, human-readable code and
clinic are filled in from it:

    await log_activity(db, user, "created", entity=order,
                       summary="Created order ORD-20260219-001 for Jane Doe")

Explicit keyword arguments win over anything derived from ``entity``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.models.activity_log import ActivityLog
from clinicdesk.models.user import User

logger = logging.getLogger("clinicdesk.audit")

# ORM class name -> (entity_type, attribute holding the display code)
_ENTITY_CODES = {
    "Order": ("order", "order_number"),
    "Payment": ("payment", "payment_number"),
    "Client": ("client", None),
    "Clinic": ("clinic", "name"),
    "Product": ("product", "code"),
    "Appointment": ("appointment", None),
    "User": ("user", "email"),
}


def describe_entity(entity: Any) -> dict[str, Any]:
    """entity_type / entity_id / entity_code / clinic_id for an ORM row."""
    name = type(entity).__name__
    entity_type, code_attr = _ENTITY_CODES.get(name, (name.lower(), None))
    clinic_id = entity.id if name == "Clinic" else getattr(entity, "clinic_id", None)
    return {
        "entity_type": entity_type,
        "entity_id": getattr(entity, "id", None),
        "entity_code": getattr(entity, code_attr) if code_attr else None,
        "clinic_id": clinic_id,
    }


async def log_activity(
    db: AsyncSession,
    user: User,
    action: str,
    *,
    entity: Any = None,
    summary: str | None = None,
    details: dict | None = None,
    **fields: Any,
) -> ActivityLog:
    values = describe_entity(entity) if entity is not None else {}
    values.update({k: v for k, v in fields.items() if v is not None})

    entry = ActivityLog(
        user_id=user.id,
        user_name=user.full_name,
        action=action,
        entity_type=values["entity_type"],
        entity_id=values.get("entity_id"),
        entity_code=values.get("entity_code"),
        clinic_id=values.get("clinic_id"),
        summary=summary,
        details=details,
    )
    db.add(entry)
    logger.info(
        f"{user.email} {action} {entry.entity_type} "
        f"{entry.entity_code or entry.entity_id or ''}".rstrip()
    )
    return entry
