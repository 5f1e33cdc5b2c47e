from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional

from ...core.database import get_db
from ...core.ability import Ability, Action, Subject
from ...core.exceptions import NotFoundError
from ...core.security import SessionUser
from ...api.deps import (
    RecordScope, get_audit_service, get_current_session,
    get_record_scope, require_ability
)
from ...services.audit_service import AuditService
from ...services.billing_service import BillingService
from ...schemas.invoice import InvoiceCreate, InvoiceUpdate, PaymentUpdate, InvoiceResponse

router = APIRouter(prefix="/invoices", tags=["Invoices"])

def _get_visible(service: BillingService, invoice_id: int, scope: RecordScope):
    invoice = service.get_invoice(invoice_id)
    doctor_id = invoice.appointment.doctor_id if invoice.appointment else None
    if not scope.allows(invoice.patient_id, doctor_id):
        raise NotFoundError("Invoice")
    return invoice

@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    payment_status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    specialty: Optional[str] = None,
    identification_number: Optional[str] = None,
    scope: RecordScope = Depends(get_record_scope),
    _: Ability = Depends(require_ability(Action.READ, Subject.INVOICES)),
    db: Session = Depends(get_db)
):
    """List invoices visible to the caller."""
    if scope.empty:
        return []

    return BillingService(db).list_invoices(
        patient_id=scope.patient_id if scope.patient_id is not None else patient_id,
        doctor_id=scope.doctor_id if scope.doctor_id is not None else doctor_id,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        specialty=specialty,
        identification_number=identification_number,
    )

@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    scope: RecordScope = Depends(get_record_scope),
    _: Ability = Depends(require_ability(Action.READ, Subject.INVOICES)),
    db: Session = Depends(get_db)
):
    return _get_visible(BillingService(db), invoice_id, scope)

@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.CREATE, Subject.INVOICES)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    created_by = session.user_id if session.user_id > 0 else None
    with audit.track("create", "invoice", user_id=session.user_id) as operation:
        invoice = BillingService(db).create_invoice(invoice_data, created_by=created_by)
        operation.resource_id = invoice.invoice_id
        operation.details = invoice.invoice_number

    return invoice

@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    invoice_data: InvoiceUpdate,
    session: SessionUser = Depends(get_current_session),
    ability: Ability = Depends(require_ability(Action.UPDATE, Subject.INVOICES)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("update", "invoice", user_id=session.user_id, resource_id=invoice_id):
        invoice = BillingService(db).update_invoice(invoice_id, invoice_data, session, ability)

    return invoice

@router.put("/{invoice_id}/payment", response_model=InvoiceResponse)
async def update_invoice_payment(
    invoice_id: int,
    payment_data: PaymentUpdate,
    session: SessionUser = Depends(get_current_session),
    ability: Ability = Depends(require_ability(Action.UPDATE, Subject.INVOICES)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    """Record the paid amount; the payment status follows from it."""
    with audit.track("update_payment", "invoice", user_id=session.user_id, resource_id=invoice_id) as operation:
        invoice = BillingService(db).update_payment(
            invoice_id,
            payment_data.paid_amount,
            payment_data.payment_method,
            session,
            ability,
        )
        operation.details = f"paid_amount={invoice.paid_amount} status={invoice.payment_status}"

    return invoice

@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: int,
    session: SessionUser = Depends(get_current_session),
    ability: Ability = Depends(require_ability(Action.DELETE, Subject.INVOICES)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("delete", "invoice", user_id=session.user_id, resource_id=invoice_id):
        BillingService(db).delete_invoice(invoice_id, session, ability)

    return {"message": "Invoice deleted successfully"}
