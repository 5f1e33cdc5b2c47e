"""
Payment status derivation for appointments and invoices.

The status is always recomputed from ``paid_amount`` and ``total_amount``;
callers never set it by hand.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
import enum

Amount = Union[Decimal, int, float, str]


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


def to_decimal(value: Optional[Amount]) -> Decimal:
    """Coerce a monetary value to Decimal; None counts as zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid monetary amount: {value!r}")


def derive_payment_status(paid_amount: Optional[Amount], total_amount: Optional[Amount]) -> PaymentStatus:
    paid = to_decimal(paid_amount)
    total = to_decimal(total_amount)

    # A zero total is never automatically paid
    if paid >= total and total > 0:
        return PaymentStatus.PAID
    elif paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def apply_payment(record, paid_amount: Amount, today: Optional[date] = None) -> PaymentStatus:
    """
    Set ``paid_amount`` on a monetary record and recompute its status.

    On the first transition into ``paid`` the record's ``payment_date`` is
    stamped with ``today``; an existing date is never overwritten.
    """
    record.paid_amount = to_decimal(paid_amount)
    return recalculate(record, today=today)


def recalculate(record, today: Optional[date] = None) -> PaymentStatus:
    """Recompute ``payment_status`` after either amount changed."""
    status = derive_payment_status(record.paid_amount, record.total_amount)
    record.payment_status = status.value
    if status is PaymentStatus.PAID and getattr(record, "payment_date", None) is None:
        record.payment_date = today or date.today()
    return status
