"""Appointment scheduling.

Endpoints:
    GET    /api/appointments/          List (clinic, client, date range, status)
    POST   /api/appointments/          Book an appointment
    GET    /api/appointments/{id}      Appointment detail
    PATCH  /api/appointments/{id}      Reschedule / change status
    DELETE /api/appointments/{id}      Cancel
    GET    /api/appointments/conflicts  Overlapping bookings for a practitioner
    GET    /api/appointments/practitioners  Practitioners seen on bookings

Booking or rescheduling a practitioner into an occupied slot fails with
422 PRACTITIONER_CONFLICT.
"""

from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import ensure_clinic_access, require_permission, visible_clinic_ids
from clinicdesk.database import get_db
from clinicdesk.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from clinicdesk.models.appointment import Appointment
from clinicdesk.models.client import Client
from clinicdesk.models.user import User
from clinicdesk.schemas.appointment import (
    AppointmentCreate,
    AppointmentOut,
    AppointmentUpdate,
    ConflictCheck,
    PractitionerOut,
)
from clinicdesk.schemas.validators import to_naive_utc
from clinicdesk.services import scheduling
from clinicdesk.utils.activity import log_activity
from clinicdesk.utils.notifications import notify

router = APIRouter()


def _appointment_out(appt: Appointment) -> AppointmentOut:
    return AppointmentOut(
        id=appt.id,
        clinic_id=appt.clinic_id,
        client_id=appt.client_id,
        client_name=appt.client.full_name if appt.client else None,
        start_at=appt.start_at,
        end_at=appt.end_at,
        duration_minutes=int((appt.end_at - appt.start_at).total_seconds() // 60),
        practitioner=appt.practitioner,
        location=appt.location,
        reason=appt.reason,
        status=appt.status,
        notes=appt.notes,
        created_at=appt.created_at,
    )


async def _get_appointment(db: AsyncSession, appointment_id: str, user: User) -> Appointment:
    result = await db.execute(select(Appointment).where(Appointment.id == appointment_id))
    appt = result.scalar_one_or_none()
    if not appt:
        raise ResourceNotFoundError("Appointment", appointment_id)
    ensure_clinic_access(user, appt.clinic_id)
    return appt


@router.get("/", response_model=list[AppointmentOut])
async def list_appointments(
    clinic_id: str | None = Query(None),
    client_id: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("appointment.read")),
):
    query = select(Appointment)
    if clinic_id:
        ensure_clinic_access(user, clinic_id)
        query = query.where(Appointment.clinic_id == clinic_id)
    else:
        allowed = visible_clinic_ids(user)
        if allowed is not None:
            query = query.where(Appointment.clinic_id.in_(allowed))
    if client_id:
        query = query.where(Appointment.client_id == client_id)
    if date_from:
        query = query.where(Appointment.start_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.where(Appointment.start_at <= datetime.combine(date_to, time.max))
    if status_filter:
        query = query.where(Appointment.status == status_filter)

    result = await db.execute(query.order_by(Appointment.start_at))
    return [_appointment_out(a) for a in result.scalars().all()]


@router.get("/conflicts", response_model=ConflictCheck)
async def check_conflicts(
    practitioner: str = Query(..., min_length=1),
    start_at: datetime = Query(...),
    end_at: datetime = Query(...),
    exclude: str | None = Query(None, description="Appointment being rescheduled"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("appointment.read")),
):
    start_at, end_at = to_naive_utc(start_at), to_naive_utc(end_at)
    if end_at <= start_at:
        raise BusinessLogicError("end_at must be after start_at", "INVALID_TIME_RANGE")

    conflicts = await scheduling.find_conflicts(
        db, practitioner, start_at, end_at,
        exclude_id=exclude, visible_clinics=visible_clinic_ids(user),
    )
    return ConflictCheck(has_conflict=bool(conflicts), conflicts=conflicts)


@router.get("/practitioners", response_model=list[PractitionerOut])
async def list_practitioners(
    clinic_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("appointment.read")),
):
    if clinic_id:
        ensure_clinic_access(user, clinic_id)
        return await scheduling.list_practitioners(db, [clinic_id])
    return await scheduling.list_practitioners(db, visible_clinic_ids(user))


@router.post("/", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    body: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("appointment.write")),
):
    ensure_clinic_access(user, body.clinic_id)

    result = await db.execute(select(Client).where(Client.id == body.client_id))
    client = result.scalar_one_or_none()
    if not client:
        raise ResourceNotFoundError("Client", body.client_id)
    if client.clinic_id != body.clinic_id:
        raise BusinessLogicError(
            "Client is not registered at this clinic", "CLIENT_CLINIC_MISMATCH"
        )

    appt = Appointment(**body.model_dump(), status="scheduled", created_by=user.id)
    appt.client = client
    await scheduling.ensure_available(db, appt, visible_clinic_ids(user))
    db.add(appt)
    await db.flush()

    await log_activity(
        db, user,
        "created",
        entity=appt,
        summary=f"Booked {client.full_name} for {appt.start_at:%Y-%m-%d %H:%M}",
    )
    await notify(
        db, user, appt, "created",
        title="Appointment booked",
        message=f"{client.full_name} on {appt.start_at:%Y-%m-%d %H:%M}"
        + (f" with {appt.practitioner}" if appt.practitioner else ""),
        details={"client_name": client.full_name, "start_date": appt.start_at.isoformat()},
    )
    return _appointment_out(appt)


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("appointment.read")),
):
    return _appointment_out(await _get_appointment(db, appointment_id, user))


@router.patch("/{appointment_id}", response_model=AppointmentOut)
async def update_appointment(
    appointment_id: str,
    body: AppointmentUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("appointment.write")),
):
    appt = await _get_appointment(db, appointment_id, user)
    updates = body.model_dump(exclude_unset=True)

    start_at = updates.get("start_at", appt.start_at)
    end_at = updates.get("end_at", appt.end_at)
    if start_at is None or end_at is None or end_at <= start_at:
        raise BusinessLogicError("end_at must be after start_at", "INVALID_TIME_RANGE")

    for key, value in updates.items():
        setattr(appt, key, value)
    if updates.keys() & {"start_at", "end_at", "practitioner", "status"}:
        await scheduling.ensure_available(db, appt, visible_clinic_ids(user))
    await db.flush()

    await log_activity(
        db, user,
        "updated",
        entity=appt,
        summary=f"Updated appointment for {appt.client.full_name}",
        details={"fields": sorted(updates)},
    )
    return _appointment_out(appt)


@router.delete("/{appointment_id}", response_model=AppointmentOut)
async def cancel_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("appointment.write")),
):
    appt = await _get_appointment(db, appointment_id, user)
    if appt.status in ("completed", "cancelled"):
        raise BusinessLogicError(
            f"Cannot cancel an appointment that is already {appt.status}",
            "INVALID_STATUS_TRANSITION",
        )

    old_status = appt.status
    appt.status = "cancelled"
    await db.flush()

    await log_activity(
        db, user,
        "cancelled",
        entity=appt,
        summary=f"Cancelled appointment for {appt.client.full_name}",
    )
    await notify(
        db, user, appt, "cancelled",
        title="Appointment cancelled",
        type="warning",
        message=f"{appt.client.full_name} on {appt.start_at:%Y-%m-%d %H:%M}",
        details={"client_name": appt.client.full_name, "old_status": old_status, "new_status": "cancelled"},
    )
    return _appointment_out(appt)
