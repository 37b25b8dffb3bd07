"""Payment and revenue reports.

Both reports load the orders/payments in range and aggregate in Python
with the same calculator the order endpoints use, so report figures
always match order detail figures.  Results are cached in Redis under
the "reports" prefix and invalidated by any order or payment write.

`clinic_ids` is a comma-separated string (not a list) so it takes part
in the cache key of users scoped to several clinics.
"""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.models.order import Order
from clinicdesk.models.payment import Payment
from clinicdesk.schemas.report import (
    DayBreakdown,
    MethodBreakdown,
    MonthRevenue,
    PaymentSummary,
    PaymentTotals,
    ReportPeriod,
    RevenueReport,
    RevenueTotals,
)
from clinicdesk.services.orders import order_financials
from clinicdesk.services.totals import ZERO, PaymentStatus, money
from clinicdesk.utils.cache import cached

logger = logging.getLogger(__name__)


def _scope(clinic_id: str | None, clinic_ids: str | None) -> list[str] | None:
    if clinic_id:
        return [clinic_id]
    if clinic_ids is not None:
        return [c for c in clinic_ids.split(",") if c]
    return None


async def _orders_in_range(
    db: AsyncSession,
    start: date,
    end: date,
    scope: list[str] | None,
) -> list[Order]:
    query = select(Order).where(
        Order.is_deleted == False,  # noqa: E712
        Order.status != "cancelled",
        Order.order_date >= start,
        Order.order_date <= end,
    )
    if scope is not None:
        query = query.where(Order.clinic_id.in_(scope))
    result = await db.execute(query.order_by(Order.order_date))
    return list(result.scalars().all())


@cached(prefix="reports")
async def payment_summary(
    db: AsyncSession,
    *,
    start: date,
    end: date,
    clinic_id: str | None = None,
    clinic_ids: str | None = None,
) -> PaymentSummary:
    """Payments received in [start, end] plus the payment state of orders
    placed in the same period."""
    scope = _scope(clinic_id, clinic_ids)

    query = (
        select(Payment)
        .join(Order, Payment.order_id == Order.id)
        .where(
            Payment.is_deleted == False,  # noqa: E712
            Order.is_deleted == False,  # noqa: E712
            Payment.payment_date >= start,
            Payment.payment_date <= end,
        )
    )
    if scope is not None:
        query = query.where(Payment.clinic_id.in_(scope))
    result = await db.execute(query)
    payments = result.scalars().all()

    revenue = ZERO
    refunds = ZERO
    by_method: dict[str, list] = defaultdict(lambda: [0, ZERO])
    by_day: dict[date, list] = defaultdict(lambda: [0, ZERO])
    for p in payments:
        if p.amount >= ZERO:
            revenue += p.amount
        else:
            refunds += -p.amount
        by_method[p.method][0] += 1
        by_method[p.method][1] += p.amount
        by_day[p.payment_date][0] += 1
        by_day[p.payment_date][1] += p.amount

    outstanding = ZERO
    distribution = {s.value: 0 for s in PaymentStatus}
    for order in await _orders_in_range(db, start, end, scope):
        _, state = order_financials(order)
        outstanding += state.total_owed
        distribution[state.status.value] += 1

    logger.info(
        f"Payment summary {start}..{end}: {len(payments)} payments, "
        f"{sum(distribution.values())} orders"
    )

    return PaymentSummary(
        period=ReportPeriod(start=start.isoformat(), end=end.isoformat()),
        clinic_id=clinic_id,
        totals=PaymentTotals(
            payments=len(payments),
            revenue=money(revenue),
            refunds=money(refunds),
            net=money(revenue - refunds),
            outstanding=money(outstanding),
        ),
        by_method=[
            MethodBreakdown(method=m, count=c, amount=money(a))
            for m, (c, a) in sorted(by_method.items())
        ],
        by_day=[
            DayBreakdown(date=d.isoformat(), count=c, amount=money(a))
            for d, (c, a) in sorted(by_day.items())
        ],
        status_distribution=distribution,
    )


def _avg(total: Decimal, count: int) -> Decimal:
    return total / count if count else ZERO


@cached(prefix="reports")
async def revenue_report(
    db: AsyncSession,
    *,
    start: date,
    end: date,
    clinic_id: str | None = None,
    clinic_ids: str | None = None,
) -> RevenueReport:
    """Monthly order revenue (order totals incl. tax) for orders in range."""
    orders = await _orders_in_range(db, start, end, _scope(clinic_id, clinic_ids))

    months: dict[tuple[int, int], dict] = {}
    for order in orders:
        totals, state = order_financials(order)
        key = (order.order_date.year, order.order_date.month)
        bucket = months.setdefault(key, {"revenue": ZERO, "count": 0, "paid": 0})
        bucket["revenue"] += totals.total
        bucket["count"] += 1
        if state.status == PaymentStatus.FINAL_PAID:
            bucket["paid"] += 1

    total_revenue = sum((b["revenue"] for b in months.values()), ZERO)
    order_count = sum(b["count"] for b in months.values())
    paid_orders = sum(b["paid"] for b in months.values())

    return RevenueReport(
        clinic_id=clinic_id,
        months=[
            MonthRevenue(
                year=year,
                month=month,
                total_revenue=money(b["revenue"]),
                order_count=b["count"],
                avg_order_value=money(_avg(b["revenue"], b["count"])),
                paid_orders=b["paid"],
            )
            for (year, month), b in sorted(months.items())
        ],
        summary=RevenueTotals(
            total_revenue=money(total_revenue),
            order_count=order_count,
            avg_order_value=money(_avg(total_revenue, order_count)),
            paid_orders=paid_orders,
        ),
    )
