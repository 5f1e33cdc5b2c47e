from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging

from ..core.ability import Ability
from ..core.exceptions import NotFoundError, ReferentialConflictError, ValidationError
from ..core.ids import ID_PREFIXES, next_id
from ..core.payments import recalculate, to_decimal
from ..core.policies import can_edit_financial_record, can_delete_appointment
from ..core.security import AuthorizationError, SessionUser
from ..models.appointment import Appointment, AppointmentStatus, AppointmentType
from ..models.doctor import Doctor
from ..models.invoice import Invoice
from ..models.patient import Patient
from ..schemas.appointment import AppointmentCreate, AppointmentUpdate
from .billing_service import record_payment

logger = logging.getLogger(__name__)

VALID_STATUSES = {s.value for s in AppointmentStatus}

def fee_for(doctor: Doctor, appointment_type: str) -> Decimal:
    """Price of a visit: follow-ups use the follow-up fee, everything else the consultation fee."""
    if appointment_type == AppointmentType.FOLLOW_UP.value:
        fee = doctor.follow_up_fee
    else:
        fee = doctor.consultation_fee
    return to_decimal(fee)

def normalize_status(value: Optional[str]) -> str:
    status = (value or "").strip().lower()
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )
    return status

class AppointmentService:
    def __init__(self, db: Session):
        self.db = db

    def list_appointments(
        self,
        patient_id: Optional[int] = None,
        doctor_id: Optional[int] = None,
        schedule_date: Optional[date] = None,
        specialty: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Appointment]:
        query = self.db.query(Appointment)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if schedule_date is not None:
            query = query.filter(func.date(Appointment.schedule) == schedule_date.isoformat())
        if status:
            query = query.filter(Appointment.status == status.lower())
        if specialty:
            query = query.join(Doctor, Appointment.doctor_id == Doctor.doctor_id).filter(
                func.lower(Doctor.specialty) == specialty.lower()
            )
        return query.order_by(Appointment.schedule.desc()).all()

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.appointment_id == appointment_id
        ).first()
        if not appointment:
            raise NotFoundError("Appointment")
        return appointment

    def create_appointment(self, appointment_data: AppointmentCreate) -> Appointment:
        self._get_patient(appointment_data.patient_id)
        doctor = self._get_doctor(appointment_data.doctor_id)

        appointment = Appointment(
            appointment_id=next_id(self.db, Appointment.appointment_id, ID_PREFIXES["APPOINTMENT"]),
            patient_id=appointment_data.patient_id,
            doctor_id=doctor.doctor_id,
            schedule=appointment_data.schedule,
            schedule_at=appointment_data.schedule.strftime("%H:%M"),
            reason=appointment_data.reason,
            note=appointment_data.note,
            status=appointment_data.status,
            appointment_type=appointment_data.appointment_type,
            total_amount=fee_for(doctor, appointment_data.appointment_type),
            paid_amount=Decimal("0"),
            payment_method=appointment_data.payment_method,
        )
        recalculate(appointment)

        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.appointment_id} booked with doctor {appointment.doctor_id}")
        return appointment

    def update_appointment(
        self,
        appointment_id: int,
        appointment_data: AppointmentUpdate,
        session: SessionUser,
        ability: Optional[Ability] = None,
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if not can_edit_financial_record(appointment.payment_status, session, ability):
            raise AuthorizationError("Cannot edit a fully paid appointment")

        changes = appointment_data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "patient_id" in changes:
            self._get_patient(changes["patient_id"])
        if "doctor_id" in changes:
            self._get_doctor(changes["doctor_id"])

        for field, value in changes.items():
            setattr(appointment, field, value)

        if "schedule" in changes:
            appointment.schedule_at = appointment.schedule.strftime("%H:%M")
        if "doctor_id" in changes or "appointment_type" in changes:
            doctor = self._get_doctor(appointment.doctor_id)
            appointment.total_amount = fee_for(doctor, appointment.appointment_type)
            recalculate(appointment)

        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def update_status(self, appointment_id: int, status: str) -> Appointment:
        """Set the status only; returns the unchanged row when it already has it."""
        new_status = normalize_status(status)
        appointment = self.get_appointment(appointment_id)

        if appointment.status == new_status:
            return appointment

        appointment.status = new_status
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def update_payment(
        self,
        appointment_id: int,
        paid_amount: Decimal,
        payment_method: Optional[str],
        session: SessionUser,
        ability: Optional[Ability] = None,
    ) -> Appointment:
        """Record a payment taken directly against an appointment."""
        appointment = self.get_appointment(appointment_id)

        paid = to_decimal(paid_amount)
        if paid < 0:
            raise ValidationError("Invalid paid amount")
        if paid > to_decimal(appointment.total_amount):
            raise ValidationError("Paid amount cannot exceed total amount")
        if not can_edit_financial_record(appointment.payment_status, session, ability):
            raise AuthorizationError("Cannot change payment of a fully paid appointment")

        record_payment(self.db, appointment, paid, payment_method)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def delete_appointment(
        self,
        appointment_id: int,
        session: SessionUser,
        ability: Optional[Ability] = None,
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if not can_delete_appointment(appointment.status, appointment.payment_status, session, ability):
            raise AuthorizationError(
                "Only cancelled appointments or pending unpaid appointments can be deleted"
            )

        if self.db.query(Invoice).filter(Invoice.appointment_id == appointment_id).first() is not None:
            raise ReferentialConflictError("Appointment", "invoices")

        self.db.delete(appointment)
        self.db.commit()
        return appointment

    def _get_patient(self, patient_id: int) -> Patient:
        patient = self.db.query(Patient).filter(Patient.patient_id == patient_id).first()
        if not patient:
            raise ValidationError("Patient does not exist")
        return patient

    def _get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.doctor_id == doctor_id).first()
        if not doctor:
            raise ValidationError("Doctor does not exist")
        return doctor
