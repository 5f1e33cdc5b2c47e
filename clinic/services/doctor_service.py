from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import List, Optional

from ..core.exceptions import ConflictError, NotFoundError, ReferentialConflictError, ValidationError
from ..core.ids import ID_PREFIXES, next_id
from ..models.doctor import Doctor
from ..models.appointment import Appointment
from ..models.medical_record import MedicalRecord
from ..schemas.people import DoctorCreate, DoctorUpdate

class DoctorService:
    def __init__(self, db: Session):
        self.db = db

    def list_doctors(self, specialty: Optional[str] = None, available_only: bool = False) -> List[Doctor]:
        query = self.db.query(Doctor)
        if specialty and specialty.strip():
            query = query.filter(func.lower(Doctor.specialty) == specialty.strip().lower())
        if available_only:
            query = query.filter(Doctor.is_available.is_(True))
        return query.order_by(Doctor.name).all()

    def get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.doctor_id == doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor")
        return doctor

    def find_id_by_email(self, email: Optional[str]) -> Optional[int]:
        if not email:
            return None
        doctor = self.db.query(Doctor).filter(
            func.lower(Doctor.email) == email.lower()
        ).first()
        return doctor.doctor_id if doctor else None

    def create_doctor(self, doctor_data: DoctorCreate) -> Doctor:
        self._check_email_free(doctor_data.email)

        doctor = Doctor(
            doctor_id=next_id(self.db, Doctor.doctor_id, ID_PREFIXES["DOCTOR"]),
            availability_updated_at=datetime.utcnow(),
            **doctor_data.model_dump()
        )
        self.db.add(doctor)
        self.db.commit()
        self.db.refresh(doctor)
        return doctor

    def update_doctor(self, doctor_id: int, doctor_data: DoctorUpdate) -> Doctor:
        doctor = self.get_doctor(doctor_id)

        changes = doctor_data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "email" in changes and changes["email"].lower() != doctor.email.lower():
            self._check_email_free(changes["email"])
        if "is_available" in changes and changes["is_available"] != doctor.is_available:
            doctor.availability_updated_at = datetime.utcnow()

        for field, value in changes.items():
            setattr(doctor, field, value)

        self.db.commit()
        self.db.refresh(doctor)
        return doctor

    def delete_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.get_doctor(doctor_id)

        if self.db.query(Appointment).filter(Appointment.doctor_id == doctor_id).first() is not None:
            raise ReferentialConflictError("Doctor", "appointments")
        if self.db.query(MedicalRecord).filter(MedicalRecord.doctor_id == doctor_id).first() is not None:
            raise ReferentialConflictError("Doctor", "medical records")

        try:
            self.db.delete(doctor)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ReferentialConflictError("Doctor")

        return doctor

    def _check_email_free(self, email: str) -> None:
        existing = self.db.query(Doctor).filter(
            func.lower(Doctor.email) == email.lower()
        ).first()
        if existing:
            raise ConflictError("A doctor with this email already exists")
