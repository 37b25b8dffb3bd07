"""Practitioner availability.

A practitioner can only be in one appointment at a time, across every
clinic.  Two appointments overlap when each starts before the other ends;
back-to-back bookings (one ends exactly when the next starts) are fine.
Cancelled and no-show appointments free the slot.

Practitioners are identified by name (case-insensitive), as recorded on
the appointment.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.middleware.exceptions import BusinessLogicError
from clinicdesk.models.appointment import Appointment
from clinicdesk.schemas.appointment import ConflictOut, PractitionerOut

logger = logging.getLogger(__name__)

# Statuses that hold the practitioner's time
BLOCKING_STATUSES = ("scheduled", "in_progress", "completed")


def _practitioner_key(name: str) -> str:
    return " ".join(name.split()).lower()


async def find_conflicts(
    db: AsyncSession,
    practitioner: str,
    start_at: datetime,
    end_at: datetime,
    exclude_id: str | None = None,
    visible_clinics: list[str] | None = None,
) -> list[ConflictOut]:
    """Appointments of `practitioner` overlapping [start_at, end_at).

    Client names are withheld for clinics outside `visible_clinics`
    (None means every clinic is visible).
    """
    query = select(Appointment).where(
        func.lower(Appointment.practitioner) == _practitioner_key(practitioner),
        Appointment.status.in_(BLOCKING_STATUSES),
        Appointment.start_at < end_at,
        Appointment.end_at > start_at,
    )
    if exclude_id:
        query = query.where(Appointment.id != exclude_id)

    result = await db.execute(query.order_by(Appointment.start_at))
    conflicts = []
    for appt in result.scalars().all():
        visible = visible_clinics is None or appt.clinic_id in visible_clinics
        conflicts.append(ConflictOut(
            appointment_id=appt.id,
            client_name=appt.client.full_name if visible and appt.client else None,
            start_at=appt.start_at,
            end_at=appt.end_at,
            reason=appt.reason if visible else None,
        ))
    return conflicts


async def ensure_available(
    db: AsyncSession,
    appt: Appointment,
    visible_clinics: list[str] | None = None,
) -> None:
    """Raise PRACTITIONER_CONFLICT if booking `appt` would double-book."""
    if not appt.practitioner or appt.status not in BLOCKING_STATUSES:
        return

    conflicts = await find_conflicts(
        db, appt.practitioner, appt.start_at, appt.end_at,
        exclude_id=appt.id, visible_clinics=visible_clinics,
    )
    if conflicts:
        logger.info(
            f"Rejected booking for {appt.practitioner} "
            f"{appt.start_at:%Y-%m-%d %H:%M}: {len(conflicts)} overlapping"
        )
        raise BusinessLogicError(
            f"{appt.practitioner} is already booked between "
            f"{appt.start_at:%Y-%m-%d %H:%M} and {appt.end_at:%H:%M}",
            "PRACTITIONER_CONFLICT",
            details={"conflicts": [c.model_dump(mode="json") for c in conflicts]},
        )


async def list_practitioners(
    db: AsyncSession,
    clinic_ids: list[str] | None = None,
    now: datetime | None = None,
) -> list[PractitionerOut]:
    """Practitioners seen on appointments, with their upcoming booking count."""
    now = now or datetime.utcnow()
    query = select(Appointment).where(Appointment.practitioner.is_not(None))
    if clinic_ids is not None:
        query = query.where(Appointment.clinic_id.in_(clinic_ids))

    result = await db.execute(query.order_by(Appointment.start_at))
    by_key: dict[str, dict] = {}
    for appt in result.scalars().all():
        key = _practitioner_key(appt.practitioner)
        if not key:
            continue
        entry = by_key.setdefault(key, {"name": appt.practitioner.strip(), "clinics": set(), "upcoming": 0})
        entry["clinics"].add(appt.clinic_id)
        if appt.start_at >= now and appt.status == "scheduled":
            entry["upcoming"] += 1

    return [
        PractitionerOut(
            name=entry["name"],
            clinic_ids=sorted(entry["clinics"]),
            upcoming_appointments=entry["upcoming"],
        )
        for _, entry in sorted(by_key.items())
    ]
