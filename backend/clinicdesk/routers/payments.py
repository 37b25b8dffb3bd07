"""Payments recorded against orders.

Endpoints:
    GET    /api/payments/          List (clinic, client, order, method, date range)
    POST   /api/payments/          Record a payment
    GET    /api/payments/{id}      Payment detail
    PATCH  /api/payments/{id}      Correct a payment
    DELETE /api/payments/{id}      Soft delete

Each response includes the order's recomputed payment state.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import ensure_clinic_access, require_permission, visible_clinic_ids
from clinicdesk.database import get_db
from clinicdesk.models.payment import Payment
from clinicdesk.models.user import User
from clinicdesk.schemas.common import PaginatedResponse
from clinicdesk.schemas.payment import PaymentCreate, PaymentOut, PaymentUpdate
from clinicdesk.services import payments as payment_service
from clinicdesk.services.orders import get_order

router = APIRouter()


async def _load(db: AsyncSession, payment_id: str, user: User) -> Payment:
    payment = await payment_service.get_payment(db, payment_id)
    ensure_clinic_access(user, payment.clinic_id)
    return payment


@router.get("/", response_model=PaginatedResponse[PaymentOut])
async def list_payments(
    clinic_id: str | None = Query(None),
    client_id: str | None = Query(None),
    order_id: str | None = Query(None),
    method: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("payment.read")),
):
    base = select(Payment).where(Payment.is_deleted == False)  # noqa: E712
    if clinic_id:
        ensure_clinic_access(user, clinic_id)
        base = base.where(Payment.clinic_id == clinic_id)
    else:
        allowed = visible_clinic_ids(user)
        if allowed is not None:
            base = base.where(Payment.clinic_id.in_(allowed))
    if client_id:
        base = base.where(Payment.client_id == client_id)
    if order_id:
        base = base.where(Payment.order_id == order_id)
    if method:
        base = base.where(Payment.method == method)
    if date_from:
        base = base.where(Payment.payment_date >= date_from)
    if date_to:
        base = base.where(Payment.payment_date <= date_to)

    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    result = await db.execute(
        base.order_by(Payment.payment_date.desc(), Payment.payment_number.desc())
        .limit(limit).offset(offset)
    )
    items = [payment_service.payment_out(p) for p in result.scalars().all()]
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.post("/", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
async def record_payment(
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("payment.write")),
):
    order = await get_order(db, body.order_id)
    ensure_clinic_access(user, order.clinic_id)
    payment = await payment_service.record_payment(db, user, order, body)
    return payment_service.payment_out(payment)


@router.get("/{payment_id}", response_model=PaymentOut)
async def get_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("payment.read")),
):
    return payment_service.payment_out(await _load(db, payment_id, user))


@router.patch("/{payment_id}", response_model=PaymentOut)
async def update_payment(
    payment_id: str,
    body: PaymentUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("payment.write")),
):
    payment = await _load(db, payment_id, user)
    payment = await payment_service.update_payment(db, user, payment, body)
    return payment_service.payment_out(payment)


@router.delete("/{payment_id}", response_model=PaymentOut)
async def delete_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("payment.write")),
):
    """Soft delete; the response shows the order's state without this payment."""
    payment = await _load(db, payment_id, user)
    await payment_service.delete_payment(db, user, payment)
    return payment_service.payment_out(payment)
