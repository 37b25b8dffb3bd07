"""Pydantic schemas for user administration."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from clinicdesk.auth.permissions import ALL_PERMISSIONS
from clinicdesk.models.user import UserRole
from clinicdesk.schemas.validators import validate_phone

ROLES = tuple(r.value for r in UserRole)


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str | None = None
    role: str = UserRole.FRONT_DESK.value
    assigned_clinics: list[str] | None = None
    custom_permissions: dict[str, bool] | None = None

    @field_validator("role")
    @classmethod
    def valid_role(cls, v: str) -> str:
        if v not in ROLES:
            raise ValueError(f"role must be one of: {', '.join(ROLES)}")
        return v

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        return validate_phone(v)

    @field_validator("custom_permissions")
    @classmethod
    def known_permissions(cls, v: dict[str, bool] | None) -> dict[str, bool] | None:
        if v:
            unknown = sorted(set(v) - ALL_PERMISSIONS)
            if unknown:
                raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
        return v


class UserUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    role: str | None = None
    is_active: bool | None = None
    password: str | None = Field(None, min_length=8)
    assigned_clinics: list[str] | None = None
    custom_permissions: dict[str, bool] | None = None

    @field_validator("role")
    @classmethod
    def valid_role(cls, v: str | None) -> str | None:
        if v is not None and v not in ROLES:
            raise ValueError(f"role must be one of: {', '.join(ROLES)}")
        return v

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        return validate_phone(v)

    @field_validator("custom_permissions")
    @classmethod
    def known_permissions(cls, v: dict[str, bool] | None) -> dict[str, bool] | None:
        if v:
            unknown = sorted(set(v) - ALL_PERMISSIONS)
            if unknown:
                raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
        return v


class UserDetail(BaseModel):
    id: str
    email: str
    full_name: str
    phone: str | None
    role: str
    is_active: bool
    assigned_clinics: list[str] | None
    custom_permissions: dict[str, bool] | None
    permissions: list[str]
    last_login_at: datetime | None
    created_at: datetime


class UserStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: dict[str, int]
