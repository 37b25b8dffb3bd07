"""Order — services/products billed to a client, with its line items.

Only the authoritative inputs are stored: line items (quantity, unit
price) and the tax rate.  Subtotal, tax, total and payment status are
derived on every read by clinicdesk.services.totals.

Lifecycle:  scheduled → in_progress → completed | cancelled | no_show
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, CheckConstraint, Date, DateTime, ForeignKey,
    Integer, Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicdesk.database import Base


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    order_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    # ── Links ────────────────────────────────────────────────
    clinic_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clinics.id"), nullable=False, index=True
    )
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id"), nullable=False, index=True
    )
    appointment_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("appointments.id")
    )

    # ── Billing ──────────────────────────────────────────────
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), default="CAD")

    # ── Dates ────────────────────────────────────────────────
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    service_date: Mapped[date | None] = mapped_column(Date)
    due_date: Mapped[date | None] = mapped_column(Date)

    # scheduled | in_progress | completed | cancelled | no_show
    status: Mapped[str] = mapped_column(String(30), default="scheduled", index=True)

    # ── Metadata ─────────────────────────────────────────────
    referring_md: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    client = relationship("Client", lazy="selectin")
    line_items = relationship(
        "OrderLineItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineItem.position",
        lazy="selectin",
    )
    payments = relationship("Payment", back_populates="order", lazy="selectin")


class OrderLineItem(Base):
    __tablename__ = "order_line_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_line_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_line_items_unit_price_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)

    product_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("products.id"))
    product_code: Mapped[str | None] = mapped_column(String(50))
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    service_date: Mapped[date | None] = mapped_column(Date)

    order = relationship("Order", back_populates="line_items")
