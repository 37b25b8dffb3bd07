"""Pydantic schemas for the service catalogue."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator

from clinicdesk.schemas.validators import validate_price
from clinicdesk.services.totals import money


class ProductCreate(BaseModel):
    clinic_id: str | None = None
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    unit_price: Decimal
    duration_minutes: int | None = Field(None, ge=0)

    @field_validator("unit_price", mode="before")
    @classmethod
    def valid_price(cls, v: Any) -> Decimal:
        price = validate_price(v)
        if price is None:
            raise ValueError("unit_price is required")
        return price


class ProductUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    unit_price: Decimal | None = None
    duration_minutes: int | None = Field(None, ge=0)
    is_active: bool | None = None

    @field_validator("unit_price", mode="before")
    @classmethod
    def valid_price(cls, v: Any) -> Decimal | None:
        return validate_price(v)


class ProductOut(BaseModel):
    id: str
    clinic_id: str | None
    code: str
    name: str
    description: str | None
    unit_price: Decimal
    duration_minutes: int | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("unit_price")
    def _money(self, v: Decimal) -> float:
        return money(v)
