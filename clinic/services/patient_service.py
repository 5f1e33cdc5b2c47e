from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
import logging

from ..core.exceptions import NotFoundError, ReferentialConflictError, ValidationError
from ..core.ids import ID_PREFIXES, next_id
from ..models.patient import Patient
from ..models.doctor import Doctor
from ..models.appointment import Appointment
from ..models.invoice import Invoice
from ..models.medical_record import MedicalRecord
from ..schemas.people import PatientCreate, PatientUpdate

logger = logging.getLogger(__name__)

class PatientService:
    def __init__(self, db: Session):
        self.db = db

    def list_patients(self, search: Optional[str] = None, patient_id: Optional[int] = None) -> List[Patient]:
        query = self.db.query(Patient)
        if patient_id is not None:
            query = query.filter(Patient.patient_id == patient_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Patient.name.ilike(pattern),
                Patient.email.ilike(pattern),
                Patient.phone.ilike(pattern),
                Patient.identification_number.ilike(pattern),
            ))
        return query.order_by(Patient.name).all()

    def get_patient(self, patient_id: int) -> Patient:
        patient = self.db.query(Patient).filter(Patient.patient_id == patient_id).first()
        if not patient:
            raise NotFoundError("Patient")
        return patient

    def find_id_by_email(self, email: Optional[str]) -> Optional[int]:
        """Patient record linked to a login email (case-insensitive exact match)."""
        if not email:
            return None
        patient = self.db.query(Patient).filter(
            func.lower(Patient.email) == email.lower()
        ).first()
        return patient.patient_id if patient else None

    def create_patient(self, patient_data: PatientCreate) -> Patient:
        self._check_physician(patient_data.primary_physician)

        patient = Patient(
            patient_id=next_id(self.db, Patient.patient_id, ID_PREFIXES["PATIENT"]),
            **patient_data.model_dump()
        )
        self.db.add(patient)
        self.db.commit()
        self.db.refresh(patient)
        return patient

    def update_patient(self, patient_id: int, patient_data: PatientUpdate) -> Patient:
        patient = self.get_patient(patient_id)

        changes = patient_data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "primary_physician" in changes:
            self._check_physician(changes["primary_physician"])

        for field, value in changes.items():
            setattr(patient, field, value)

        self.db.commit()
        self.db.refresh(patient)
        return patient

    def delete_patient(self, patient_id: int) -> Patient:
        patient = self.get_patient(patient_id)

        dependents = (
            ("appointments", Appointment, Appointment.patient_id),
            ("invoices", Invoice, Invoice.patient_id),
            ("medical records", MedicalRecord, MedicalRecord.patient_id),
        )
        for label, model, column in dependents:
            if self.db.query(model).filter(column == patient_id).first() is not None:
                raise ReferentialConflictError("Patient", label)

        try:
            self.db.delete(patient)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Patient {patient_id} still referenced, delete rolled back")
            raise ReferentialConflictError("Patient")

        return patient

    def _check_physician(self, doctor_id: Optional[int]) -> None:
        if doctor_id is None:
            return
        if not self.db.query(Doctor).filter(Doctor.doctor_id == doctor_id).first():
            raise ValidationError("Primary physician does not exist")
