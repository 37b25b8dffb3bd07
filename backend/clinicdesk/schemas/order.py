"""Pydantic schemas for orders, quotes and invoices.

Inputs carry line items (quantity, unit price) and a tax percentage only.
All money outputs (subtotal, tax, total, paid, owed) are computed by
clinicdesk.services.totals and serialised as 2-decimal floats.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from clinicdesk.schemas.validators import (
    ORDER_STATUSES,
    validate_choice,
    validate_price,
    validate_quantity,
    validate_tax_pct,
)


# ── Line items ───────────────────────────────────────────────

class LineItemIn(BaseModel):
    product_id: str | None = None
    product_code: str | None = None
    product_name: str | None = Field(None, max_length=255)
    description: str | None = None
    quantity: int = 1
    unit_price: Decimal | None = None  # None → product's catalogue price
    service_date: date | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def valid_quantity(cls, v: Any) -> int:
        return validate_quantity(v)

    @field_validator("unit_price", mode="before")
    @classmethod
    def valid_price(cls, v: Any) -> Decimal | None:
        return validate_price(v)

    @model_validator(mode="after")
    def named_or_linked(self) -> "LineItemIn":
        if not self.product_id and not self.product_name:
            raise ValueError("Each line item needs a product_id or a product_name")
        if not self.product_id and self.unit_price is None:
            raise ValueError("unit_price is required when no product is linked")
        return self


class LineItemOut(BaseModel):
    id: str | None = None
    position: int
    product_id: str | None
    product_code: str | None
    product_name: str
    description: str | None
    quantity: int
    unit_price: float
    subtotal: float
    service_date: date | None


# ── Requests ─────────────────────────────────────────────────

class OrderCreate(BaseModel):
    clinic_id: str
    client_id: str
    appointment_id: str | None = None
    order_date: date = Field(default_factory=date.today)
    service_date: date | None = None
    due_date: date | None = None
    tax_rate_pct: Decimal | None = None  # None → clinic rate → default
    line_items: list[LineItemIn] = Field(..., min_length=1)
    status: str = "scheduled"
    referring_md: str | None = None
    notes: str | None = None

    @field_validator("tax_rate_pct", mode="before")
    @classmethod
    def valid_tax(cls, v: Any) -> Decimal | None:
        return validate_tax_pct(v)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        return validate_choice(v, ORDER_STATUSES, "status")


class OrderUpdate(BaseModel):
    appointment_id: str | None = None
    order_date: date | None = None
    service_date: date | None = None
    due_date: date | None = None
    tax_rate_pct: Decimal | None = None
    line_items: list[LineItemIn] | None = Field(None, min_length=1)
    status: str | None = None
    referring_md: str | None = None
    notes: str | None = None

    @field_validator("tax_rate_pct", mode="before")
    @classmethod
    def valid_tax(cls, v: Any) -> Decimal | None:
        return validate_tax_pct(v)

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str | None) -> str | None:
        return validate_choice(v, ORDER_STATUSES, "status")


class OrderQuoteRequest(BaseModel):
    """Unsaved line items, priced while the order form is being edited."""
    line_items: list[LineItemIn] = Field(default_factory=list)
    tax_rate_pct: Decimal | None = None
    clinic_id: str | None = None

    @field_validator("tax_rate_pct", mode="before")
    @classmethod
    def valid_tax(cls, v: Any) -> Decimal | None:
        return validate_tax_pct(v)


# ── Derived figures ──────────────────────────────────────────

class OrderTotalsOut(BaseModel):
    subtotal: float
    tax_rate: float
    tax_rate_pct: float
    tax_amount: float
    total: float
    total_display: str


class PaymentStateOut(BaseModel):
    total_amount: float
    total_paid: float
    total_owed: float
    status: str
    status_label: str


class QuoteOut(BaseModel):
    currency: str
    line_items: list[LineItemOut]
    totals: OrderTotalsOut


# ── Responses ────────────────────────────────────────────────

class OrderOut(BaseModel):
    id: str
    order_number: str
    invoice_number: str
    clinic_id: str
    client_id: str
    client_name: str | None
    appointment_id: str | None
    order_date: date
    service_date: date | None
    due_date: date | None
    status: str
    currency: str
    referring_md: str | None
    notes: str | None
    line_items: list[LineItemOut]
    totals: OrderTotalsOut
    payment: PaymentStateOut
    created_at: datetime
    updated_at: datetime


class OrderSummary(BaseModel):
    id: str
    order_number: str
    clinic_id: str
    client_id: str
    client_name: str | None
    order_date: date
    status: str
    currency: str
    total: float
    total_paid: float
    total_owed: float
    payment_status: str
    payment_status_label: str


class InvoicePaymentLine(BaseModel):
    payment_number: str
    payment_date: date
    method: str
    reference: str | None
    amount: float
    amount_display: str


class InvoiceOut(BaseModel):
    invoice_number: str
    order_number: str
    invoice_date: date
    due_date: date | None
    service_date: date | None
    currency: str
    clinic: dict
    client: dict
    insurance: dict | None
    referring_md: str | None
    line_items: list[LineItemOut]
    totals: OrderTotalsOut
    payment: PaymentStateOut
    payments: list[InvoicePaymentLine]
    amount_paid_display: str
    amount_due_display: str
