"""Payment recording.

Every write recomputes the order's payment state from its remaining
(non-deleted) payments, so the status in the response is always current.

Negative amounts (refunds, adjustments) are accepted only when the
caller sets `confirm_negative`.  Overpayments are accepted; the order
shows as Final Paid with nothing owed and a warning is logged, since the
excess is not carried as a credit.
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from clinicdesk.models.order import Order
from clinicdesk.models.payment import Payment
from clinicdesk.models.user import User
from clinicdesk.schemas.payment import PaymentCreate, PaymentOut, PaymentUpdate
from clinicdesk.services.orders import order_financials, payment_state_out
from clinicdesk.services.totals import ZERO, PaymentStatus, format_currency, money
from clinicdesk.utils.activity import log_activity
from clinicdesk.utils.cache import invalidate_cache
from clinicdesk.utils.numbering import generate_code
from clinicdesk.utils.notifications import notify

logger = logging.getLogger(__name__)


def _guard_negative(amount: Decimal, confirmed: bool) -> None:
    if amount < ZERO and not confirmed:
        raise BusinessLogicError(
            f"Amount {amount} is negative. Negative payments record a refund or "
            "adjustment; resend with confirm_negative=true to record it.",
            "NEGATIVE_AMOUNT_UNCONFIRMED",
        )


def _guard_order_active(payment: Payment) -> None:
    if payment.order.is_deleted:
        raise BusinessLogicError(
            f"Order {payment.order.order_number} has been deleted; "
            f"payment {payment.payment_number} can no longer be changed",
            "ORDER_DELETED",
        )


def _warn_if_overpaid(order: Order) -> None:
    totals, state = order_financials(order)
    if state.total_paid > totals.total:
        logger.warning(
            f"Order {order.order_number} overpaid: paid {state.total_paid}, "
            f"total {totals.total}; excess is not tracked as credit"
        )


async def get_payment(db: AsyncSession, payment_id: str) -> Payment:
    result = await db.execute(
        select(Payment).where(Payment.id == payment_id, Payment.is_deleted == False)  # noqa: E712
    )
    payment = result.scalar_one_or_none()
    if not payment:
        raise ResourceNotFoundError("Payment", payment_id)
    return payment


def payment_out(payment: Payment) -> PaymentOut:
    order = payment.order
    _, state = order_financials(order)
    return PaymentOut(
        id=payment.id,
        payment_number=payment.payment_number,
        order_id=payment.order_id,
        order_number=order.order_number,
        clinic_id=payment.clinic_id,
        client_id=payment.client_id,
        amount=money(payment.amount),
        amount_display=format_currency(payment.amount, payment.currency),
        currency=payment.currency,
        method=payment.method,
        payment_date=payment.payment_date,
        reference=payment.reference,
        notes=payment.notes,
        recorded_by=payment.recorded_by,
        created_at=payment.created_at,
        order_payment=payment_state_out(state),
    )


async def record_payment(db: AsyncSession, user: User, order: Order, body: PaymentCreate) -> Payment:
    _guard_negative(body.amount, body.confirm_negative)

    payment = Payment(
        payment_number=await generate_code(db, "payment"),
        clinic_id=order.clinic_id,
        client_id=order.client_id,
        amount=body.amount,
        currency=order.currency,
        method=body.method,
        payment_date=body.payment_date,
        reference=body.reference,
        notes=body.notes,
        recorded_by=user.id,
    )
    # Appends to order.payments as well, so the state below includes it
    payment.order = order
    db.add(payment)
    await db.flush()

    if body.amount < ZERO:
        logger.warning(
            f"Negative payment {payment.payment_number} of {body.amount} "
            f"confirmed on order {order.order_number} by {user.email}"
        )
    _warn_if_overpaid(order)

    await log_activity(
        db, user,
        "created",
        entity=payment,
        summary=(
            f"Recorded {format_currency(body.amount, order.currency)} "
            f"({body.method}) on order {order.order_number}"
        ),
    )
    _, state = order_financials(order)
    if body.amount < ZERO:
        kind, title = "warning", "Refund recorded"
    elif state.status is PaymentStatus.FINAL_PAID:
        kind, title = "success", "Order paid in full"
    else:
        kind, title = "info", "Payment received"
    await notify(
        db, user, payment, "created",
        title=title,
        type=kind,
        message=(
            f"{format_currency(body.amount, order.currency)} ({body.method}) on "
            f"{order.order_number}; {format_currency(state.total_owed, order.currency)} owing"
        ),
        details={"order_number": order.order_number, "payment_number": payment.payment_number,
                 "amount": money(body.amount), "payment_method": body.method,
                 "status": state.status.value},
    )
    await invalidate_cache("reports:*")
    return payment


async def update_payment(db: AsyncSession, user: User, payment: Payment, body: PaymentUpdate) -> Payment:
    _guard_order_active(payment)
    updates = body.model_dump(exclude_unset=True, exclude={"confirm_negative"})
    if "amount" in updates and updates["amount"] is None:
        del updates["amount"]
    if "amount" in updates:
        _guard_negative(updates["amount"], body.confirm_negative)

    old_amount = payment.amount
    for field, value in updates.items():
        setattr(payment, field, value)
    await db.flush()

    details = {"fields": sorted(updates)}
    if payment.amount != old_amount:
        details["amount"] = {"old": money(old_amount), "new": money(payment.amount)}
        if payment.amount < ZERO:
            logger.warning(
                f"Payment {payment.payment_number} changed to negative amount "
                f"{payment.amount} by {user.email}"
            )
        _warn_if_overpaid(payment.order)

    await log_activity(
        db, user,
        "updated",
        entity=payment,
        summary=f"Updated payment {payment.payment_number}",
        details=details,
    )
    await invalidate_cache("reports:*")
    return payment


async def delete_payment(db: AsyncSession, user: User, payment: Payment) -> None:
    """Soft delete; the order's paid total drops accordingly."""
    _guard_order_active(payment)
    payment.is_deleted = True
    await db.flush()
    await log_activity(
        db, user,
        "deleted",
        entity=payment,
        summary=(
            f"Deleted payment {payment.payment_number} "
            f"({format_currency(payment.amount, payment.currency)})"
        ),
    )
    await invalidate_cache("reports:*")
