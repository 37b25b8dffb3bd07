"""Order totals and payment status.

Every money figure ClinicDesk shows comes from this module: the order
quote, order detail, invoice, payment recording and the reports all
derive subtotal / tax / total and the payment status here.

Amounts are carried as exact ``Decimal`` values.  Nothing is rounded
while accumulating line items; ``round_currency`` is applied only when a
value is serialised or displayed.

Line items and recorded payments are the authoritative inputs.  The
figures computed here are never persisted.

Boundary helpers (``parse_amount``, ``parse_quantity``,
``tax_rate_from_percent``) reject malformed user input with
``AmountParseError`` instead of coercing it to zero.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

ZERO = Decimal("0")
_CENTS = Decimal("0.01")
_HUNDRED = Decimal("100")

# Decimal places accepted at the boundary; match the Numeric columns
MONEY_PLACES = 2
PERCENT_PLACES = 2

CURRENCY_SYMBOLS = {
    "CAD": "$",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


class AmountParseError(ValueError):
    """User input could not be read as a valid number."""


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    FINAL_PAID = "final_paid"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @classmethod
    def parse(cls, value: str) -> PaymentStatus:
        """Accept the canonical value, the label, or a legacy alias."""
        key = " ".join(value.strip().lower().replace("_", " ").replace("-", " ").split())
        try:
            return _STATUS_ALIASES[key]
        except KeyError:
            raise ValueError(f"Unknown payment status: {value!r}") from None


_STATUS_LABELS = {
    PaymentStatus.UNPAID: "Unpaid",
    PaymentStatus.PARTIALLY_PAID: "Partially Paid",
    PaymentStatus.FINAL_PAID: "Final Paid",
}

_STATUS_ALIASES = {
    "unpaid": PaymentStatus.UNPAID,
    "partially paid": PaymentStatus.PARTIALLY_PAID,
    "partiallypaid": PaymentStatus.PARTIALLY_PAID,
    "partial": PaymentStatus.PARTIALLY_PAID,
    "final paid": PaymentStatus.FINAL_PAID,
    "finalpaid": PaymentStatus.FINAL_PAID,
    "paid": PaymentStatus.FINAL_PAID,
}


@dataclass(frozen=True)
class LineItem:
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return compute_line_subtotal(self.quantity, self.unit_price)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class PaymentState:
    total_amount: Decimal
    total_paid: Decimal
    total_owed: Decimal
    status: PaymentStatus


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value: Any) -> Decimal:
    return to_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


def money(value: Any) -> float:
    """Round to cents and return a float for JSON responses."""
    return float(round_currency(value))


def format_currency(value: Any, currency: str = "CAD") -> str:
    """Render ``1234.5`` as ``$1,234.50`` (symbol depends on currency)."""
    amount = round_currency(value)
    code = (currency or "").upper()
    sign = "-" if amount < 0 else ""
    body = f"{abs(amount):,.2f}"
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{sign}{symbol}{body}"
    return f"{sign}{code} {body}"


# ── Boundary parsing ─────────────────────────────────────────

def parse_amount(
    raw: Any,
    *,
    field: str = "amount",
    allow_negative: bool = True,
    max_places: int | None = None,
) -> Decimal:
    """Parse a user-entered amount.

    Accepts numbers and numeric strings (``"1,250.00"``, ``"$90"``).
    Raises AmountParseError for blanks, garbage, NaN/Infinity and, when
    ``allow_negative`` is False, negative values.  With ``max_places``
    set, values needing more decimal places than the column stores are
    rejected instead of being rounded on save (``"33.333"`` for cents).
    """
    if raw is None or isinstance(raw, bool):
        raise AmountParseError(f"{field} is required")

    if isinstance(raw, str):
        text = raw.strip().replace(",", "")
        for symbol in set(CURRENCY_SYMBOLS.values()):
            text = text.replace(symbol, "")
        text = text.strip()
        if not text:
            raise AmountParseError(f"{field} is required")
    else:
        text = str(raw)

    try:
        value = Decimal(text)
    except InvalidOperation:
        raise AmountParseError(f"{field} must be a number, got {raw!r}") from None

    if not value.is_finite():
        raise AmountParseError(f"{field} must be a finite number")
    if not allow_negative and value < 0:
        raise AmountParseError(f"{field} cannot be negative")
    if max_places is not None and value.normalize().as_tuple().exponent < -max_places:
        raise AmountParseError(f"{field} allows at most {max_places} decimal places")
    return value


def parse_quantity(raw: Any) -> int:
    """Parse a line-item quantity: a whole number, at least 1."""
    value = parse_amount(raw, field="quantity")
    if value != value.to_integral_value():
        raise AmountParseError("quantity must be a whole number")
    if value < 1:
        raise AmountParseError("quantity must be at least 1")
    return int(value)


def tax_rate_from_percent(raw: Any) -> Decimal:
    """Convert a percentage (``13``) into the fraction used for tax (``0.13``)."""
    pct = parse_amount(raw, field="tax_rate_pct", allow_negative=False, max_places=PERCENT_PLACES)
    if pct > _HUNDRED:
        raise AmountParseError("tax_rate_pct cannot exceed 100%")
    return pct / _HUNDRED


# ── Calculator ───────────────────────────────────────────────

def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name)


def compute_line_subtotal(quantity: Any, unit_price: Any) -> Decimal:
    return to_decimal(quantity) * to_decimal(unit_price)


def compute_order_totals(line_items: Iterable[Any] | None, tax_rate: Any = ZERO) -> OrderTotals:
    """Derive subtotal, tax and total from line items.

    ``line_items`` may hold LineItem instances, ORM rows, schemas or
    mappings; anything exposing ``quantity`` and ``unit_price``.
    ``tax_rate`` is a fraction (0.13 for 13 %).  Inputs are expected to
    be validated already; no rounding is applied here.
    """
    rate = to_decimal(tax_rate)
    subtotal = ZERO
    for item in line_items or []:
        subtotal += compute_line_subtotal(_field(item, "quantity"), _field(item, "unit_price"))

    tax_amount = subtotal * rate
    return OrderTotals(
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
    )


def compute_payment_state(total_amount: Any, total_paid: Any) -> PaymentState:
    """Derive the amount owed and the payment status.

    Overpayment is reported as FINAL_PAID with nothing owed; the excess
    is not tracked as a credit.  A net-negative paid amount (refunds
    exceeding receipts) counts as UNPAID.
    """
    amount = to_decimal(total_amount)
    paid = to_decimal(total_paid)

    if paid <= ZERO:
        status = PaymentStatus.UNPAID
    elif paid < amount:
        status = PaymentStatus.PARTIALLY_PAID
    else:
        status = PaymentStatus.FINAL_PAID

    return PaymentState(
        total_amount=amount,
        total_paid=paid,
        total_owed=max(ZERO, amount - paid),
        status=status,
    )
