"""Payment and revenue reports (cached, see clinicdesk.services.reports).

Endpoints:
    GET /api/reports/payments/summary   Payments, refunds, outstanding, breakdowns
    GET /api/reports/revenue            Monthly order revenue
"""

from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import ensure_clinic_access, require_permission, visible_clinic_ids
from clinicdesk.database import get_db
from clinicdesk.models.user import User
from clinicdesk.schemas.report import PaymentSummary, RevenueReport
from clinicdesk.services import reports as report_service

router = APIRouter()


def _resolve_range(start: date | None, end: date | None, default_days: int) -> tuple[date, date]:
    end = end or date.today()
    start = start or (end - timedelta(days=default_days))
    if start > end:
        raise HTTPException(status_code=400, detail="start must be on or before end")
    return start, end


def _scope(user: User, clinic_id: str | None) -> str | None:
    """Comma-joined clinic IDs for scoped users without an explicit clinic."""
    if clinic_id:
        ensure_clinic_access(user, clinic_id)
        return None
    allowed = visible_clinic_ids(user)
    return ",".join(sorted(allowed)) if allowed is not None else None


@router.get("/payments/summary", response_model=PaymentSummary)
async def payment_summary(
    start: date | None = Query(None, description="Defaults to 30 days before end"),
    end: date | None = Query(None, description="Defaults to today"),
    clinic_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("reports.read")),
):
    start, end = _resolve_range(start, end, default_days=30)
    return await report_service.payment_summary(
        db,
        start=start,
        end=end,
        clinic_id=clinic_id,
        clinic_ids=_scope(user, clinic_id),
    )


@router.get("/revenue", response_model=RevenueReport)
async def revenue(
    start: date | None = Query(None, description="Defaults to 365 days before end"),
    end: date | None = Query(None, description="Defaults to today"),
    clinic_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("reports.read")),
):
    start, end = _resolve_range(start, end, default_days=365)
    return await report_service.revenue_report(
        db,
        start=start,
        end=end,
        clinic_id=clinic_id,
        clinic_ids=_scope(user, clinic_id),
    )
