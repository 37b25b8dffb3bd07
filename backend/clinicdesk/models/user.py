import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from clinicdesk.database import Base


class UserRole(str, enum.Enum):
    ADMINISTRATOR = "administrator"
    PRACTITIONER = "practitioner"
    FRONT_DESK = "front_desk"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20))
    role: Mapped[UserRole] = mapped_column(SAEnum(UserRole), default=UserRole.FRONT_DESK)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Per-user overrides on top of role defaults.
    # JSON dict of {"permission.name": true/false}; null = role defaults only.
    custom_permissions: Mapped[dict | None] = mapped_column(JSON, default=None)

    # Clinic scope: null = every clinic, ["id1", "id2"] = only these.
    assigned_clinics: Mapped[list | None] = mapped_column(JSON, default=None)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
