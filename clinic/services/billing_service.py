from sqlalchemy import func, update
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from ..core.ability import Ability
from ..core.exceptions import ConcurrentUpdateError, NotFoundError, ValidationError
from ..core.ids import ID_PREFIXES, next_id, invoice_number_for
from ..core.payments import PaymentStatus, derive_payment_status, recalculate, to_decimal
from ..core.policies import can_edit_financial_record, can_delete_invoice
from ..core.security import AuthorizationError, SessionUser
from ..models.appointment import Appointment
from ..models.doctor import Doctor
from ..models.invoice import Invoice
from ..models.patient import Patient
from ..schemas.invoice import InvoiceCreate, InvoiceUpdate

logger = logging.getLogger(__name__)

def record_payment(
    db: Session,
    record,
    paid_amount: Decimal,
    payment_method: Optional[str] = None,
    today: Optional[date] = None,
) -> PaymentStatus:
    """
    Store a new paid amount on an appointment or invoice in one conditional
    UPDATE.

    The row only changes if its amounts still equal the ones observed on
    ``record``; otherwise another writer got there first and
    ConcurrentUpdateError is raised. The payment date is written with
    COALESCE so the first completion date is kept. The caller commits.
    """
    model = type(record)
    pk = model.__mapper__.primary_key[0]
    paid = to_decimal(paid_amount)
    status = derive_payment_status(paid, record.total_amount)

    values = {
        "paid_amount": paid,
        "payment_status": status.value,
    }
    if payment_method is not None:
        values["payment_method"] = payment_method
    if status is PaymentStatus.PAID:
        values["payment_date"] = func.coalesce(model.payment_date, today or date.today())

    stmt = (
        update(model)
        .where(
            pk == getattr(record, pk.key),
            model.paid_amount == record.paid_amount,
            model.total_amount == record.total_amount,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        logger.warning(f"Concurrent payment update on {model.__name__} {getattr(record, pk.key)}")
        raise ConcurrentUpdateError(model.__name__)

    db.expire(record)
    return status

class BillingService:
    def __init__(self, db: Session):
        self.db = db

    def list_invoices(
        self,
        patient_id: Optional[int] = None,
        doctor_id: Optional[int] = None,
        payment_status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        specialty: Optional[str] = None,
        identification_number: Optional[str] = None,
    ) -> List[Invoice]:
        query = self.db.query(Invoice)
        if patient_id is not None:
            query = query.filter(Invoice.patient_id == patient_id)
        if payment_status:
            query = query.filter(Invoice.payment_status == payment_status)
        if date_from:
            query = query.filter(Invoice.invoice_date >= date_from)
        if date_to:
            query = query.filter(Invoice.invoice_date <= date_to)
        if doctor_id is not None or specialty:
            query = query.join(Appointment, Invoice.appointment_id == Appointment.appointment_id)
            if doctor_id is not None:
                query = query.filter(Appointment.doctor_id == doctor_id)
            if specialty:
                query = query.join(Doctor, Appointment.doctor_id == Doctor.doctor_id).filter(
                    func.lower(Doctor.specialty) == specialty.lower()
                )
        if identification_number:
            query = query.join(Patient, Invoice.patient_id == Patient.patient_id).filter(
                Patient.identification_number == identification_number
            )
        return query.order_by(Invoice.invoice_date.desc(), Invoice.invoice_id.desc()).all()

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.query(Invoice).filter(Invoice.invoice_id == invoice_id).first()
        if not invoice:
            raise NotFoundError("Invoice")
        return invoice

    def create_invoice(self, invoice_data: InvoiceCreate, created_by: Optional[int] = None) -> Invoice:
        if not self.db.query(Patient).filter(Patient.patient_id == invoice_data.patient_id).first():
            raise ValidationError("Patient does not exist")

        amount = invoice_data.amount
        if invoice_data.appointment_id is not None:
            appointment = self._get_appointment(invoice_data.appointment_id)
            if appointment.patient_id != invoice_data.patient_id:
                raise ValidationError("Appointment belongs to a different patient")
            if amount is None:
                amount = appointment.total_amount
        if amount is None:
            raise ValidationError("Amount is required")

        invoice_date = invoice_data.invoice_date or date.today()
        invoice_id = next_id(self.db, Invoice.invoice_id, ID_PREFIXES["INVOICE"])
        invoice = Invoice(
            invoice_id=invoice_id,
            invoice_number=invoice_number_for(invoice_id, invoice_date.year),
            patient_id=invoice_data.patient_id,
            appointment_id=invoice_data.appointment_id,
            invoice_date=invoice_date,
            amount=to_decimal(amount),
            discount=to_decimal(invoice_data.discount),
            total_amount=max(Decimal("0"), to_decimal(amount) - to_decimal(invoice_data.discount)),
            paid_amount=Decimal("0"),
            payment_method=invoice_data.payment_method,
            notes=invoice_data.notes,
            created_by=created_by,
        )
        recalculate(invoice)

        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} created for patient {invoice.patient_id}")
        return invoice

    def update_invoice(
        self,
        invoice_id: int,
        invoice_data: InvoiceUpdate,
        session: SessionUser,
        ability: Optional[Ability] = None,
    ) -> Invoice:
        invoice = self.get_invoice(invoice_id)
        if not can_edit_financial_record(invoice.payment_status, session, ability):
            raise AuthorizationError("Cannot edit a fully paid invoice")

        changes = invoice_data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "patient_id" in changes and not self.db.query(Patient).filter(
            Patient.patient_id == changes["patient_id"]
        ).first():
            raise ValidationError("Patient does not exist")
        patient_id = changes.get("patient_id", invoice.patient_id)
        appointment_id = changes.get("appointment_id", invoice.appointment_id)
        if ("patient_id" in changes or "appointment_id" in changes) and appointment_id is not None:
            if self._get_appointment(appointment_id).patient_id != patient_id:
                raise ValidationError("Appointment belongs to a different patient")

        for field, value in changes.items():
            setattr(invoice, field, value)

        if "amount" in changes or "discount" in changes:
            invoice.total_amount = max(
                Decimal("0"),
                to_decimal(invoice.amount) - to_decimal(invoice.discount)
            )
            recalculate(invoice)

        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def update_payment(
        self,
        invoice_id: int,
        paid_amount: Decimal,
        payment_method: Optional[str],
        session: SessionUser,
        ability: Optional[Ability] = None,
    ) -> Invoice:
        """Record a payment on an invoice and mirror it onto its appointment."""
        invoice = self.get_invoice(invoice_id)

        paid = to_decimal(paid_amount)
        if paid < 0:
            raise ValidationError("Invalid paid amount")
        if paid > to_decimal(invoice.total_amount):
            raise ValidationError("Paid amount cannot exceed total amount")
        if not can_edit_financial_record(invoice.payment_status, session, ability):
            raise AuthorizationError("Cannot change payment of a fully paid invoice")

        appointment = invoice.appointment
        record_payment(self.db, invoice, paid, payment_method)
        if appointment is not None:
            record_payment(self.db, appointment, paid, payment_method)

        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def delete_invoice(
        self,
        invoice_id: int,
        session: SessionUser,
        ability: Optional[Ability] = None,
    ) -> Invoice:
        if not can_delete_invoice(session, ability):
            raise AuthorizationError("Only Super Admin can delete invoices")

        invoice = self.get_invoice(invoice_id)
        self.db.delete(invoice)
        self.db.commit()
        return invoice

    def monthly_revenue(self, invoices: Optional[List[Invoice]] = None) -> List[Dict]:
        """Invoice totals grouped by month, newest first."""
        if invoices is None:
            invoices = self.db.query(Invoice).all()

        months: Dict[str, Dict] = {}
        for invoice in invoices:
            key = invoice.invoice_date.strftime("%Y-%m")
            row = months.setdefault(key, {
                "month": key,
                "total_invoices": 0,
                "total_revenue": Decimal("0"),
                "total_paid": Decimal("0"),
                "total_remaining": Decimal("0"),
                "paid_count": 0,
                "partial_count": 0,
                "unpaid_count": 0,
            })
            total = to_decimal(invoice.total_amount)
            paid = to_decimal(invoice.paid_amount)
            row["total_invoices"] += 1
            row["total_revenue"] += total
            row["total_paid"] += paid
            row["total_remaining"] += max(total - paid, Decimal("0"))
            status_key = f"{invoice.payment_status}_count"
            if status_key in row:
                row[status_key] += 1

        return [months[key] for key in sorted(months, reverse=True)]

    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.appointment_id == appointment_id
        ).first()
        if not appointment:
            raise ValidationError("Appointment does not exist")
        return appointment
