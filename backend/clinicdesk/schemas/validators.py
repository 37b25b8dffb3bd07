"""Reusable Pydantic validators.

Money and quantity fields are parsed with the boundary helpers from
clinicdesk.services.totals, so a malformed number becomes a 422
validation error rather than a silent zero.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from clinicdesk.services.totals import (
    MONEY_PLACES,
    PERCENT_PLACES,
    AmountParseError,
    parse_amount,
    parse_quantity,
)

PHONE_REGEX = re.compile(r"^\+?[0-9]{7,15}$")

APPOINTMENT_STATUSES = ("scheduled", "in_progress", "completed", "cancelled", "no_show")
ORDER_STATUSES = APPOINTMENT_STATUSES
PAYMENT_METHODS = (
    "cash",
    "credit_card",
    "debit_card",
    "cheque",
    "bank_transfer",
    "insurance_primary",
    "insurance_secondary",
)


def validate_phone(value: str | None) -> str | None:
    """Validate a phone number.

    Spaces, dashes, dots and parentheses are stripped before checking for
    7-15 digits with an optional leading "+".

    Raises:
        ValueError: If the number is malformed
    """
    if value is None or not value.strip():
        return None

    cleaned = re.sub(r"[\s\-\.\(\)]", "", value)
    if not PHONE_REGEX.match(cleaned):
        raise ValueError("Invalid phone number format")
    return cleaned


def validate_choice(value: str | None, choices: Iterable[str], field: str) -> str | None:
    if value is None:
        return None
    choices = tuple(choices)
    if value not in choices:
        raise ValueError(f"{field} must be one of: {', '.join(choices)}")
    return value


def validate_price(value: Any) -> Decimal | None:
    """Non-negative amount, or None when omitted."""
    if value is None:
        return None
    return parse_amount(value, field="unit_price", allow_negative=False, max_places=MONEY_PLACES)


def validate_signed_amount(value: Any) -> Decimal | None:
    """Amount that may be negative (refunds) but never zero."""
    if value is None:
        return None
    amount = parse_amount(value, max_places=MONEY_PLACES)
    if amount == 0:
        raise ValueError("Amount cannot be zero")
    return amount


def validate_quantity(value: Any) -> int:
    return parse_quantity(value)


def validate_tax_pct(value: Any) -> Decimal | None:
    """Percentage in [0, 100]; returned unchanged (still a percentage)."""
    if value is None:
        return None
    pct = parse_amount(value, field="tax_rate_pct", allow_negative=False, max_places=PERCENT_PLACES)
    if pct > 100:
        raise AmountParseError("tax_rate_pct cannot exceed 100%")
    return pct


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Timestamps are stored as naive UTC; convert offset-aware input."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
