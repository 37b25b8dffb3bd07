"""Order service: line items in, derived financials out.

Only line items, the tax rate and recorded payments are stored.  Every
response that shows money goes through `order_financials()`, which runs
the calculator in clinicdesk.services.totals, so a read right after an
edit always reflects the edit.

Tax rate resolution for new orders:
  1. `tax_rate_pct` on the request
  2. the clinic's `tax_rate`
  3. `settings.default_tax_rate`
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.config import settings
from clinicdesk.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from clinicdesk.models.appointment import Appointment
from clinicdesk.models.client import Client
from clinicdesk.models.clinic import Clinic
from clinicdesk.models.order import Order, OrderLineItem
from clinicdesk.models.payment import Payment
from clinicdesk.models.product import Product
from clinicdesk.models.user import User
from clinicdesk.schemas.order import (
    InvoiceOut,
    InvoicePaymentLine,
    LineItemIn,
    LineItemOut,
    OrderCreate,
    OrderOut,
    OrderQuoteRequest,
    OrderSummary,
    OrderTotalsOut,
    OrderUpdate,
    PaymentStateOut,
    QuoteOut,
)
from clinicdesk.services.totals import (
    ZERO,
    OrderTotals,
    PaymentState,
    compute_line_subtotal,
    compute_order_totals,
    compute_payment_state,
    format_currency,
    money,
    tax_rate_from_percent,
)
from clinicdesk.utils.activity import log_activity
from clinicdesk.utils.cache import invalidate_cache
from clinicdesk.utils.numbering import generate_code
from clinicdesk.utils.notifications import notify

logger = logging.getLogger(__name__)


# ── Lookups ──────────────────────────────────────────────────

async def get_clinic(db: AsyncSession, clinic_id: str) -> Clinic:
    result = await db.execute(select(Clinic).where(Clinic.id == clinic_id))
    clinic = result.scalar_one_or_none()
    if not clinic:
        raise ResourceNotFoundError("Clinic", clinic_id)
    return clinic


async def get_order(db: AsyncSession, order_id: str) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.is_deleted == False)  # noqa: E712
    )
    order = result.scalar_one_or_none()
    if not order:
        raise ResourceNotFoundError("Order", order_id)
    return order


def default_tax_rate() -> Decimal:
    return Decimal(str(settings.default_tax_rate))


def resolve_tax_rate(tax_rate_pct: Decimal | None, clinic: Clinic | None) -> Decimal:
    if tax_rate_pct is not None:
        return tax_rate_from_percent(tax_rate_pct)
    if clinic is not None and clinic.tax_rate is not None:
        return clinic.tax_rate
    return default_tax_rate()


# ── Financials ───────────────────────────────────────────────

def active_payments(order: Order) -> list[Payment]:
    return [p for p in order.payments if not p.is_deleted]


def paid_total(payments: Iterable[Payment]) -> Decimal:
    return sum((p.amount for p in payments), ZERO)


def order_financials(order: Order) -> tuple[OrderTotals, PaymentState]:
    """Totals and payment state for an order, computed from its rows."""
    totals = compute_order_totals(order.line_items, order.tax_rate)
    state = compute_payment_state(totals.total, paid_total(active_payments(order)))
    return totals, state


def totals_out(totals: OrderTotals, currency: str) -> OrderTotalsOut:
    return OrderTotalsOut(
        subtotal=money(totals.subtotal),
        tax_rate=float(totals.tax_rate),
        tax_rate_pct=float(totals.tax_rate * 100),
        tax_amount=money(totals.tax_amount),
        total=money(totals.total),
        total_display=format_currency(totals.total, currency),
    )


def payment_state_out(state: PaymentState) -> PaymentStateOut:
    return PaymentStateOut(
        total_amount=money(state.total_amount),
        total_paid=money(state.total_paid),
        total_owed=money(state.total_owed),
        status=state.status.value,
        status_label=state.status.label,
    )


def line_item_out(item: OrderLineItem) -> LineItemOut:
    return LineItemOut(
        id=item.id,
        position=item.position,
        product_id=item.product_id,
        product_code=item.product_code,
        product_name=item.product_name,
        description=item.description,
        quantity=item.quantity,
        unit_price=money(item.unit_price),
        subtotal=money(compute_line_subtotal(item.quantity, item.unit_price)),
        service_date=item.service_date,
    )


def order_out(order: Order) -> OrderOut:
    totals, state = order_financials(order)
    return OrderOut(
        id=order.id,
        order_number=order.order_number,
        invoice_number=order.invoice_number,
        clinic_id=order.clinic_id,
        client_id=order.client_id,
        client_name=order.client.full_name if order.client else None,
        appointment_id=order.appointment_id,
        order_date=order.order_date,
        service_date=order.service_date,
        due_date=order.due_date,
        status=order.status,
        currency=order.currency,
        referring_md=order.referring_md,
        notes=order.notes,
        line_items=[line_item_out(li) for li in order.line_items],
        totals=totals_out(totals, order.currency),
        payment=payment_state_out(state),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def order_summary(order: Order) -> OrderSummary:
    totals, state = order_financials(order)
    return OrderSummary(
        id=order.id,
        order_number=order.order_number,
        clinic_id=order.clinic_id,
        client_id=order.client_id,
        client_name=order.client.full_name if order.client else None,
        order_date=order.order_date,
        status=order.status,
        currency=order.currency,
        total=money(totals.total),
        total_paid=money(state.total_paid),
        total_owed=money(state.total_owed),
        payment_status=state.status.value,
        payment_status_label=state.status.label,
    )


# ── Line items ───────────────────────────────────────────────

async def build_line_items(db: AsyncSession, items: list[LineItemIn]) -> list[OrderLineItem]:
    """Turn request line items into (unsaved) rows.

    A linked product fills in the name, code and price the request left out.
    """
    product_ids = {i.product_id for i in items if i.product_id}
    products: dict[str, Product] = {}
    if product_ids:
        result = await db.execute(select(Product).where(Product.id.in_(product_ids)))
        products = {p.id: p for p in result.scalars().all()}
        missing = product_ids - set(products)
        if missing:
            raise ResourceNotFoundError("Product", ", ".join(sorted(missing)))

    rows = []
    for position, item in enumerate(items):
        product = products.get(item.product_id) if item.product_id else None
        unit_price = item.unit_price
        if unit_price is None:
            unit_price = product.unit_price
        rows.append(OrderLineItem(
            position=position,
            product_id=item.product_id,
            product_code=item.product_code or (product.code if product else None),
            product_name=item.product_name or product.name,
            description=item.description,
            quantity=item.quantity,
            unit_price=unit_price,
            service_date=item.service_date,
        ))
    return rows


# ── Quote ────────────────────────────────────────────────────

async def quote(db: AsyncSession, body: OrderQuoteRequest) -> QuoteOut:
    """Price unsaved line items; nothing is written."""
    clinic = await get_clinic(db, body.clinic_id) if body.clinic_id else None
    currency = clinic.currency if clinic else settings.default_currency
    rows = await build_line_items(db, body.line_items)
    totals = compute_order_totals(rows, resolve_tax_rate(body.tax_rate_pct, clinic))
    return QuoteOut(
        currency=currency,
        line_items=[line_item_out(r) for r in rows],
        totals=totals_out(totals, currency),
    )


# ── Create / update / delete ─────────────────────────────────

async def _check_links(
    db: AsyncSession,
    clinic_id: str,
    client_id: str,
    appointment_id: str | None,
) -> Client:
    result = await db.execute(select(Client).where(Client.id == client_id))
    client = result.scalar_one_or_none()
    if not client:
        raise ResourceNotFoundError("Client", client_id)
    if client.clinic_id != clinic_id:
        raise BusinessLogicError(
            "Client is not registered at this clinic", "CLIENT_CLINIC_MISMATCH"
        )

    if appointment_id:
        result = await db.execute(select(Appointment).where(Appointment.id == appointment_id))
        appointment = result.scalar_one_or_none()
        if not appointment:
            raise ResourceNotFoundError("Appointment", appointment_id)
        if appointment.client_id != client_id:
            raise BusinessLogicError(
                "Appointment belongs to a different client", "APPOINTMENT_CLIENT_MISMATCH"
            )
    return client


async def create_order(db: AsyncSession, user: User, body: OrderCreate) -> Order:
    clinic = await get_clinic(db, body.clinic_id)
    client = await _check_links(db, clinic.id, body.client_id, body.appointment_id)
    line_items = await build_line_items(db, body.line_items)

    order = Order(
        order_number=await generate_code(db, "order"),
        invoice_number=await generate_code(db, "invoice"),
        clinic_id=clinic.id,
        client_id=client.id,
        appointment_id=body.appointment_id,
        tax_rate=resolve_tax_rate(body.tax_rate_pct, clinic),
        currency=clinic.currency or settings.default_currency,
        order_date=body.order_date,
        service_date=body.service_date,
        due_date=body.due_date,
        status=body.status,
        referring_md=body.referring_md or client.referring_md,
        notes=body.notes,
        created_by=user.id,
        line_items=line_items,
        payments=[],
    )
    order.client = client
    db.add(order)
    await db.flush()

    totals, _ = order_financials(order)
    await log_activity(
        db, user,
        "created",
        entity=order,
        summary=(
            f"Created order {order.order_number} for {client.full_name} "
            f"({format_currency(totals.total, order.currency)})"
        ),
    )
    await notify(
        db, user, order, "created",
        title="New order",
        message=(
            f"{order.order_number} for {client.full_name} "
            f"({format_currency(totals.total, order.currency)})"
        ),
        details={"client_name": client.full_name, "order_number": order.order_number,
                 "amount": money(totals.total)},
    )
    await invalidate_cache("reports:*")
    return order


async def update_order(db: AsyncSession, user: User, order: Order, body: OrderUpdate) -> Order:
    updates = body.model_dump(exclude_unset=True, exclude={"line_items", "tax_rate_pct"})
    if "appointment_id" in updates and updates["appointment_id"]:
        await _check_links(db, order.clinic_id, order.client_id, updates["appointment_id"])

    before, _ = order_financials(order)
    changed = sorted(updates)

    for field, value in updates.items():
        setattr(order, field, value)

    if body.tax_rate_pct is not None:
        order.tax_rate = tax_rate_from_percent(body.tax_rate_pct)
        changed.append("tax_rate")

    if body.line_items is not None:
        order.line_items = await build_line_items(db, body.line_items)
        changed.append("line_items")

    await db.flush()

    after, state = order_financials(order)
    details = {"fields": changed}
    if after.total != before.total:
        details["total"] = {"old": money(before.total), "new": money(after.total)}
        if state.total_paid > after.total:
            logger.warning(
                f"Order {order.order_number} total reduced below amount paid "
                f"({state.total_paid} > {after.total})"
            )

    await log_activity(
        db, user,
        "updated",
        entity=order,
        summary=f"Updated order {order.order_number}",
        details=details,
    )
    await invalidate_cache("reports:*")
    return order


async def delete_order(db: AsyncSession, user: User, order: Order) -> None:
    """Soft delete; payments stay attached for the audit trail."""
    order.is_deleted = True
    await db.flush()
    await log_activity(
        db, user,
        "deleted",
        entity=order,
        summary=f"Deleted order {order.order_number}",
    )
    await invalidate_cache("reports:*")


# ── Invoice ──────────────────────────────────────────────────

async def build_invoice(db: AsyncSession, order: Order) -> InvoiceOut:
    clinic = await get_clinic(db, order.clinic_id)
    client = order.client
    totals, state = order_financials(order)
    payments = sorted(active_payments(order), key=lambda p: (p.payment_date, p.payment_number))

    return InvoiceOut(
        invoice_number=order.invoice_number,
        order_number=order.order_number,
        invoice_date=order.order_date or date.today(),
        due_date=order.due_date,
        service_date=order.service_date,
        currency=order.currency,
        clinic={
            "name": clinic.display_name,
            "address": clinic.address,
            "city": clinic.city,
            "province": clinic.province,
            "postal_code": clinic.postal_code,
            "phone": clinic.phone,
            "email": clinic.email,
        },
        client={
            "id": client.id,
            "name": client.full_name,
            "date_of_birth": client.date_of_birth.isoformat() if client.date_of_birth else None,
            "address": client.address,
            "city": client.city,
            "province": client.province,
            "postal_code": client.postal_code,
            "phone": client.phone,
            "email": client.email,
        },
        insurance=client.insurance,
        referring_md=order.referring_md,
        line_items=[line_item_out(li) for li in order.line_items],
        totals=totals_out(totals, order.currency),
        payment=payment_state_out(state),
        payments=[
            InvoicePaymentLine(
                payment_number=p.payment_number,
                payment_date=p.payment_date,
                method=p.method,
                reference=p.reference,
                amount=money(p.amount),
                amount_display=format_currency(p.amount, p.currency),
            )
            for p in payments
        ],
        amount_paid_display=format_currency(state.total_paid, order.currency),
        amount_due_display=format_currency(state.total_owed, order.currency),
    )
