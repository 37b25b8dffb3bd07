"""Sequential document numbers.

Format tokens:
  {date}   → YYYYMMDD
  {seq:N}  → zero-padded sequence number, N digits, resets daily per prefix

Formats come from `settings.number_formats`; defaults:
  order:    ORD-{date}-{seq:3}
  invoice:  INV-{date}-{seq:3}
  payment:  PAY-{date}-{seq:3}
"""

import re
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.config import settings
from clinicdesk.models.order import Order
from clinicdesk.models.payment import Payment

DEFAULT_FORMATS = {
    "order": "ORD-{date}-{seq:3}",
    "invoice": "INV-{date}-{seq:3}",
    "payment": "PAY-{date}-{seq:3}",
}

# Column each entity's codes are counted on
ENTITY_COLUMN_MAP = {
    "order": Order.order_number,
    "invoice": Order.invoice_number,
    "payment": Payment.payment_number,
}


def _get_format(entity: str) -> str:
    return settings.number_formats.get(entity) or DEFAULT_FORMATS[entity]


def _build_prefix(fmt: str, today_str: str) -> str:
    """Everything before {seq:N}, used to count today's codes."""
    prefix = fmt.replace("{date}", today_str)
    return re.sub(r"\{seq:\d+\}.*$", "", prefix)


async def _count_existing(db: AsyncSession, entity: str, prefix: str) -> int:
    column = ENTITY_COLUMN_MAP[entity]
    result = await db.execute(
        select(func.count()).where(column.like(f"{prefix}%"))
    )
    return result.scalar() or 0


async def generate_code(db: AsyncSession, entity: str, today: date | None = None) -> str:
    """Generate the next code for an entity, e.g. "ORD-20260219-001".

    Args:
        db: Database session
        entity: One of "order", "invoice", "payment"
        today: Date to stamp (defaults to today)
    """
    fmt = _get_format(entity)
    today_str = (today or date.today()).strftime("%Y%m%d")

    prefix = _build_prefix(fmt, today_str)
    seq_num = await _count_existing(db, entity, prefix) + 1

    seq_match = re.search(r"\{seq:(\d+)\}", fmt)
    seq_width = int(seq_match.group(1)) if seq_match else 3

    code = fmt.replace("{date}", today_str)
    return re.sub(r"\{seq:\d+\}", f"{seq_num:0{seq_width}d}", code)
