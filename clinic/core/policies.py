"""
Edit and delete gates for financial records and appointments.
"""

from typing import Optional

from .ability import Ability, Action, Subject
from .payments import PaymentStatus
from .security import SessionUser

DELETABLE_UNPAID_STATUS = "pending"
CANCELLED_STATUS = "cancelled"


def has_full_access(session: Optional[SessionUser], ability: Optional[Ability]) -> bool:
    """Super admin session, or an ability holding {manage, all}."""
    if session is not None and session.is_super_admin:
        return True
    return ability is not None and ability.can(Action.MANAGE, Subject.ALL)


def can_edit_financial_record(
    payment_status: Optional[str],
    session: Optional[SessionUser],
    ability: Optional[Ability] = None,
) -> bool:
    if payment_status == PaymentStatus.PAID.value:
        return has_full_access(session, ability)
    return True


def can_delete_appointment(
    status: Optional[str],
    payment_status: Optional[str],
    session: Optional[SessionUser],
    ability: Optional[Ability] = None,
) -> bool:
    if has_full_access(session, ability):
        return True
    if status == CANCELLED_STATUS:
        return True
    return (
        status == DELETABLE_UNPAID_STATUS
        and (payment_status or PaymentStatus.UNPAID.value) == PaymentStatus.UNPAID.value
    )


def can_delete_invoice(session: Optional[SessionUser], ability: Optional[Ability] = None) -> bool:
    return has_full_access(session, ability)
