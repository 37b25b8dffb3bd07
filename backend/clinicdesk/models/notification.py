"""Notification — a clinic-wide message about a billing or scheduling event.

Raised by order, payment and appointment writes and shown in the
front-desk notification dropdown.  A notification belongs to one clinic;
marking it read records who read it.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clinicdesk.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    clinic_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # ── Classification ───────────────────────────────────────
    # info | success | warning | error
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="info")
    # payment | order | appointment
    category: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Entity reference ─────────────────────────────────────
    entity_type: Mapped[str | None] = mapped_column(String(50))
    entity_id: Mapped[str | None] = mapped_column(String(36))
    # {"client_name": ..., "order_number": ..., "amount": ...}
    details: Mapped[dict | None] = mapped_column(JSON)

    # ── Read state ───────────────────────────────────────────
    read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    read_by: Mapped[list] = mapped_column(JSON, default=list)
    read_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_by: Mapped[str | None] = mapped_column(String(36))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
