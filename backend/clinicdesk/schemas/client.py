"""Pydantic schemas for client (patient) records."""

from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from clinicdesk.schemas.validators import validate_phone


class InsurancePlan(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=255)
    policy_number: str = Field(..., min_length=1, max_length=100)
    group_number: str | None = None
    coverage_pct: float | None = Field(None, ge=0, le=100)
    annual_maximum: float | None = Field(None, ge=0)


class InsuranceInfo(BaseModel):
    primary: InsurancePlan | None = None
    secondary: InsurancePlan | None = None


class ClientCreate(BaseModel):
    clinic_id: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date | None = None
    gender: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    referring_md: str | None = None
    insurance: InsuranceInfo | None = None
    notes: str | None = None

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        return validate_phone(v)

    @field_validator("date_of_birth")
    @classmethod
    def not_in_future(cls, v: date | None) -> date | None:
        if v is not None and v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class ClientUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    referring_md: str | None = None
    insurance: InsuranceInfo | None = None
    notes: str | None = None

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        return validate_phone(v)


class ClientOut(BaseModel):
    id: str
    clinic_id: str
    first_name: str
    last_name: str
    full_name: str
    date_of_birth: date | None
    gender: str | None
    email: str | None
    phone: str | None
    address: str | None
    city: str | None
    province: str | None
    postal_code: str | None
    referring_md: str | None
    insurance: InsuranceInfo | None
    notes: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
