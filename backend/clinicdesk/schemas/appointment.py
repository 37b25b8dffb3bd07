"""Pydantic schemas for appointments.

Start and end times are normalised to naive UTC on input, matching the
stored columns, so request values compare safely against saved rows.
"""

from datetime import datetime

from pydantic import BaseModel, field_validator, model_validator

from clinicdesk.schemas.validators import APPOINTMENT_STATUSES, to_naive_utc, validate_choice


class AppointmentCreate(BaseModel):
    clinic_id: str
    client_id: str
    start_at: datetime
    end_at: datetime
    practitioner: str | None = None
    location: str | None = None
    reason: str | None = None
    notes: str | None = None

    @field_validator("start_at", "end_at")
    @classmethod
    def naive_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def end_after_start(self) -> "AppointmentCreate":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class AppointmentUpdate(BaseModel):
    start_at: datetime | None = None
    end_at: datetime | None = None
    practitioner: str | None = None
    location: str | None = None
    reason: str | None = None
    status: str | None = None
    notes: str | None = None

    @field_validator("start_at", "end_at")
    @classmethod
    def naive_utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str | None) -> str | None:
        return validate_choice(v, APPOINTMENT_STATUSES, "status")


class AppointmentOut(BaseModel):
    id: str
    clinic_id: str
    client_id: str
    client_name: str | None = None
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    practitioner: str | None
    location: str | None
    reason: str | None
    status: str
    notes: str | None
    created_at: datetime


class ConflictOut(BaseModel):
    appointment_id: str
    client_name: str | None
    start_at: datetime
    end_at: datetime
    reason: str | None


class ConflictCheck(BaseModel):
    has_conflict: bool
    conflicts: list[ConflictOut]


class PractitionerOut(BaseModel):
    name: str
    clinic_ids: list[str]
    upcoming_appointments: int
