"""Pydantic schemas for payments.

A negative amount is a refund or adjustment and must be submitted with
``confirm_negative=true``; the service rejects it otherwise.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from clinicdesk.schemas.order import PaymentStateOut
from clinicdesk.schemas.validators import (
    PAYMENT_METHODS,
    validate_choice,
    validate_signed_amount,
)


class PaymentCreate(BaseModel):
    order_id: str
    amount: Decimal
    method: str
    payment_date: date = Field(default_factory=date.today)
    reference: str | None = Field(None, max_length=100)
    notes: str | None = None
    confirm_negative: bool = False

    @field_validator("amount", mode="before")
    @classmethod
    def valid_amount(cls, v: Any) -> Decimal:
        amount = validate_signed_amount(v)
        if amount is None:
            raise ValueError("amount is required")
        return amount

    @field_validator("method")
    @classmethod
    def valid_method(cls, v: str) -> str:
        return validate_choice(v, PAYMENT_METHODS, "method")


class PaymentUpdate(BaseModel):
    amount: Decimal | None = None
    method: str | None = None
    payment_date: date | None = None
    reference: str | None = Field(None, max_length=100)
    notes: str | None = None
    confirm_negative: bool = False

    @field_validator("amount", mode="before")
    @classmethod
    def valid_amount(cls, v: Any) -> Decimal | None:
        return validate_signed_amount(v)

    @field_validator("method")
    @classmethod
    def valid_method(cls, v: str | None) -> str | None:
        return validate_choice(v, PAYMENT_METHODS, "method")


class PaymentOut(BaseModel):
    id: str
    payment_number: str
    order_id: str
    order_number: str | None = None
    clinic_id: str
    client_id: str
    amount: float
    amount_display: str
    currency: str
    method: str
    payment_date: date
    reference: str | None
    notes: str | None
    recorded_by: str | None
    created_at: datetime
    order_payment: PaymentStateOut
