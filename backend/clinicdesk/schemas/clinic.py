"""Pydantic schemas for clinic settings."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from clinicdesk.schemas.validators import validate_phone, validate_tax_pct


class ClinicCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9\-]*$")
    display_name: str = Field(..., max_length=255)
    address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    phone: str | None = None
    email: str | None = None
    tax_rate_pct: Decimal | None = None
    currency: str = Field("CAD", min_length=3, max_length=3)

    @field_validator("tax_rate_pct", mode="before")
    @classmethod
    def valid_tax(cls, v: Any) -> Decimal | None:
        return validate_tax_pct(v)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        return validate_phone(v)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class ClinicUpdate(BaseModel):
    display_name: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    phone: str | None = None
    email: str | None = None
    tax_rate_pct: Decimal | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    is_active: bool | None = None

    @field_validator("tax_rate_pct", mode="before")
    @classmethod
    def valid_tax(cls, v: Any) -> Decimal | None:
        return validate_tax_pct(v)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        return validate_phone(v)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str | None) -> str | None:
        return v.upper() if v else v


class ClinicOut(BaseModel):
    id: str
    name: str
    display_name: str
    address: str | None
    city: str | None
    province: str | None
    postal_code: str | None
    phone: str | None
    email: str | None
    tax_rate: float            # effective fraction (clinic rate or default)
    tax_rate_pct: float
    uses_default_tax_rate: bool
    currency: str
    is_active: bool
    created_at: datetime
