"""Clinic settings: address, tax rate, currency.

Endpoints:
    GET   /api/clinics             List clinics visible to the user
    POST  /api/clinics             Create a clinic
    GET   /api/clinics/{ref}       Get a clinic by id or name
    PATCH /api/clinics/{id}        Update a clinic
"""

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import ensure_clinic_access, require_permission, visible_clinic_ids
from clinicdesk.database import get_db
from clinicdesk.middleware.exceptions import ResourceNotFoundError
from clinicdesk.models.clinic import Clinic
from clinicdesk.models.user import User
from clinicdesk.schemas.clinic import ClinicCreate, ClinicOut, ClinicUpdate
from clinicdesk.services.orders import default_tax_rate, get_clinic
from clinicdesk.services.totals import tax_rate_from_percent
from clinicdesk.utils.activity import log_activity

router = APIRouter()


def _clinic_out(clinic: Clinic) -> ClinicOut:
    rate: Decimal = clinic.tax_rate if clinic.tax_rate is not None else default_tax_rate()
    return ClinicOut(
        id=clinic.id,
        name=clinic.name,
        display_name=clinic.display_name,
        address=clinic.address,
        city=clinic.city,
        province=clinic.province,
        postal_code=clinic.postal_code,
        phone=clinic.phone,
        email=clinic.email,
        tax_rate=float(rate),
        tax_rate_pct=float(rate * 100),
        uses_default_tax_rate=clinic.tax_rate is None,
        currency=clinic.currency,
        is_active=clinic.is_active,
        created_at=clinic.created_at,
    )


@router.get("/", response_model=list[ClinicOut])
async def list_clinics(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("clinic.read")),
):
    query = select(Clinic).order_by(Clinic.display_name)
    allowed = visible_clinic_ids(user)
    if allowed is not None:
        query = query.where(Clinic.id.in_(allowed))
    result = await db.execute(query)
    return [_clinic_out(c) for c in result.scalars().all()]


@router.post("/", response_model=ClinicOut, status_code=status.HTTP_201_CREATED)
async def create_clinic(
    body: ClinicCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("clinic.write")),
):
    existing = await db.execute(select(Clinic).where(Clinic.name == body.name))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail=f"Clinic name '{body.name}' already in use")

    data = body.model_dump(exclude={"tax_rate_pct"})
    clinic = Clinic(
        **data,
        tax_rate=tax_rate_from_percent(body.tax_rate_pct) if body.tax_rate_pct is not None else None,
    )
    db.add(clinic)
    await db.flush()

    await log_activity(
        db, user,
        "created",
        entity=clinic,
        summary=f"Created clinic {clinic.display_name}",
    )
    return _clinic_out(clinic)


@router.get("/{clinic_ref}", response_model=ClinicOut)
async def get_clinic_detail(
    clinic_ref: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("clinic.read")),
):
    result = await db.execute(
        select(Clinic).where(or_(Clinic.id == clinic_ref, Clinic.name == clinic_ref))
    )
    clinic = result.scalar_one_or_none()
    if not clinic:
        raise ResourceNotFoundError("Clinic", clinic_ref)
    ensure_clinic_access(user, clinic.id)
    return _clinic_out(clinic)


@router.patch("/{clinic_id}", response_model=ClinicOut)
async def update_clinic(
    clinic_id: str,
    body: ClinicUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("clinic.write")),
):
    clinic = await get_clinic(db, clinic_id)
    ensure_clinic_access(user, clinic.id)

    updates = body.model_dump(exclude_unset=True, exclude={"tax_rate_pct"})
    for field, value in updates.items():
        setattr(clinic, field, value)
    if "tax_rate_pct" in body.model_fields_set:
        # Explicit null reverts to the configured default
        clinic.tax_rate = (
            tax_rate_from_percent(body.tax_rate_pct) if body.tax_rate_pct is not None else None
        )
    await db.flush()

    await log_activity(
        db, user,
        "updated",
        entity=clinic,
        summary=f"Updated clinic {clinic.display_name}",
        details={"fields": sorted(body.model_fields_set)},
    )
    return _clinic_out(clinic)
