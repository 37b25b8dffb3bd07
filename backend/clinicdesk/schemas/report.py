from pydantic import BaseModel


class ReportPeriod(BaseModel):
    start: str
    end: str


class PaymentTotals(BaseModel):
    payments: int
    revenue: float
    refunds: float
    net: float
    outstanding: float


class MethodBreakdown(BaseModel):
    method: str
    count: int
    amount: float


class DayBreakdown(BaseModel):
    date: str
    count: int
    amount: float


class PaymentSummary(BaseModel):
    period: ReportPeriod
    clinic_id: str | None
    totals: PaymentTotals
    by_method: list[MethodBreakdown]
    by_day: list[DayBreakdown]
    status_distribution: dict[str, int]


class MonthRevenue(BaseModel):
    year: int
    month: int
    total_revenue: float
    order_count: int
    avg_order_value: float
    paid_orders: int


class RevenueTotals(BaseModel):
    total_revenue: float
    order_count: int
    avg_order_value: float
    paid_orders: int


class RevenueReport(BaseModel):
    clinic_id: str | None
    months: list[MonthRevenue]
    summary: RevenueTotals
