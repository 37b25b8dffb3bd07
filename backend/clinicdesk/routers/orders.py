"""Orders: line items billed to a client, with derived totals.

Endpoints:
    GET    /api/orders/                List (clinic, client, status, payment status)
    POST   /api/orders/quote           Price unsaved line items (no write)
    POST   /api/orders/                Create order
    GET    /api/orders/{id}            Order detail with totals and payment state
    PATCH  /api/orders/{id}            Update line items, tax rate, status, notes
    DELETE /api/orders/{id}            Soft delete
    GET    /api/orders/{id}/invoice    Invoice document
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import ensure_clinic_access, require_permission, visible_clinic_ids
from clinicdesk.database import get_db
from clinicdesk.models.order import Order
from clinicdesk.models.user import User
from clinicdesk.schemas.common import PaginatedResponse
from clinicdesk.schemas.order import (
    InvoiceOut,
    OrderCreate,
    OrderOut,
    OrderQuoteRequest,
    OrderSummary,
    OrderUpdate,
    QuoteOut,
)
from clinicdesk.services import orders as order_service
from clinicdesk.services.totals import PaymentStatus

router = APIRouter()


async def _load(db: AsyncSession, order_id: str, user: User) -> Order:
    order = await order_service.get_order(db, order_id)
    ensure_clinic_access(user, order.clinic_id)
    return order


@router.get("/", response_model=PaginatedResponse[OrderSummary])
async def list_orders(
    clinic_id: str | None = Query(None),
    client_id: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    payment_status: str | None = Query(
        None, description="unpaid | partially_paid | final_paid (labels accepted)"
    ),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("order.read")),
):
    base = select(Order).where(Order.is_deleted == False)  # noqa: E712
    if clinic_id:
        ensure_clinic_access(user, clinic_id)
        base = base.where(Order.clinic_id == clinic_id)
    else:
        allowed = visible_clinic_ids(user)
        if allowed is not None:
            base = base.where(Order.clinic_id.in_(allowed))
    if client_id:
        base = base.where(Order.client_id == client_id)
    if status_filter:
        base = base.where(Order.status == status_filter)
    ordered = base.order_by(Order.order_date.desc(), Order.order_number.desc())

    if payment_status:
        # Payment status is derived, so this filter runs after loading
        try:
            wanted = PaymentStatus.parse(payment_status)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        result = await db.execute(ordered)
        matches = [
            s for s in (order_service.order_summary(o) for o in result.scalars().all())
            if s.payment_status == wanted.value
        ]
        return PaginatedResponse.from_rows(matches, limit, offset)

    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    result = await db.execute(ordered.limit(limit).offset(offset))
    items = [order_service.order_summary(o) for o in result.scalars().all()]
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.post("/quote", response_model=QuoteOut)
async def quote_order(
    body: OrderQuoteRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("order.read")),
):
    """Recompute totals for line items still being edited."""
    if body.clinic_id:
        ensure_clinic_access(user, body.clinic_id)
    return await order_service.quote(db, body)


@router.post("/", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("order.write")),
):
    ensure_clinic_access(user, body.clinic_id)
    order = await order_service.create_order(db, user, body)
    return order_service.order_out(order)


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("order.read")),
):
    return order_service.order_out(await _load(db, order_id, user))


@router.patch("/{order_id}", response_model=OrderOut)
async def update_order(
    order_id: str,
    body: OrderUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("order.write")),
):
    order = await _load(db, order_id, user)
    order = await order_service.update_order(db, user, order, body)
    return order_service.order_out(order)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("order.write")),
):
    order = await _load(db, order_id, user)
    await order_service.delete_order(db, user, order)


@router.get("/{order_id}/invoice", response_model=InvoiceOut)
async def get_invoice(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("order.read")),
):
    order = await _load(db, order_id, user)
    return await order_service.build_invoice(db, order)
