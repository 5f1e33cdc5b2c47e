from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..core.ids import ID_PREFIXES, next_id
from ..core.roles import RoleId
from ..core.security import AuthorizationError, SessionUser
from ..models.doctor import Doctor
from ..models.medical_record import MedicalRecord
from ..models.patient import Patient
from ..schemas.medical_record import MedicalRecordCreate, MedicalRecordUpdate
from .doctor_service import DoctorService
from .patient_service import PatientService

WRITER_ROLES = (RoleId.ADMIN, RoleId.DOCTOR)
READER_ROLES = (RoleId.ADMIN, RoleId.DOCTOR, RoleId.PATIENT)

class MedicalRecordService:
    """
    Clinical records. Doctors, admins and super admins read and write;
    doctors only touch records they authored. Patients read their own.
    """

    def __init__(self, db: Session):
        self.db = db

    def list_records(self, session: SessionUser, patient_id: Optional[int] = None) -> List[MedicalRecord]:
        self._require_reader(session)

        query = self.db.query(MedicalRecord)
        if session.role_id == RoleId.PATIENT and not session.is_super_admin:
            own_id = PatientService(self.db).find_id_by_email(session.email)
            if own_id is None:
                return []
            query = query.filter(MedicalRecord.patient_id == own_id)
        elif patient_id is not None:
            query = query.filter(MedicalRecord.patient_id == patient_id)

        return query.order_by(MedicalRecord.created_at.desc(), MedicalRecord.record_id.desc()).all()

    def get_record(self, record_id: int, session: SessionUser) -> MedicalRecord:
        self._require_reader(session)

        record = self._load(record_id)
        if session.role_id == RoleId.PATIENT and not session.is_super_admin:
            own_id = PatientService(self.db).find_id_by_email(session.email)
            if own_id != record.patient_id:
                # Same answer as a missing row
                raise NotFoundError("Medical record")
        return record

    def create_record(self, record_data: MedicalRecordCreate, session: SessionUser) -> MedicalRecord:
        self._require_writer(session)

        if not self.db.query(Patient).filter(Patient.patient_id == record_data.patient_id).first():
            raise ValidationError("Patient does not exist")

        doctor_id = record_data.doctor_id
        if self._is_doctor(session):
            own_id = self._own_doctor_id(session)
            if doctor_id is not None and doctor_id != own_id:
                raise AuthorizationError("Doctors can only write their own medical records")
            doctor_id = own_id
        if doctor_id is None:
            raise ValidationError("Doctor is required")
        if not self.db.query(Doctor).filter(Doctor.doctor_id == doctor_id).first():
            raise ValidationError("Doctor does not exist")

        record = MedicalRecord(
            record_id=next_id(self.db, MedicalRecord.record_id, ID_PREFIXES["MEDICAL_RECORD"]),
            **{**record_data.model_dump(), "doctor_id": doctor_id}
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def update_record(self, record_id: int, record_data: MedicalRecordUpdate, session: SessionUser) -> MedicalRecord:
        self._require_writer(session)
        record = self._load(record_id)
        self._check_author(record, session)

        changes = record_data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        for field, value in changes.items():
            setattr(record, field, value)

        self.db.commit()
        self.db.refresh(record)
        return record

    def delete_record(self, record_id: int, session: SessionUser) -> MedicalRecord:
        self._require_writer(session)
        record = self._load(record_id)
        self._check_author(record, session)

        self.db.delete(record)
        self.db.commit()
        return record

    def _load(self, record_id: int) -> MedicalRecord:
        record = self.db.query(MedicalRecord).filter(MedicalRecord.record_id == record_id).first()
        if not record:
            raise NotFoundError("Medical record")
        return record

    def _is_doctor(self, session: SessionUser) -> bool:
        return session.role_id == RoleId.DOCTOR and not session.is_super_admin

    def _own_doctor_id(self, session: SessionUser) -> int:
        doctor_id = DoctorService(self.db).find_id_by_email(session.email)
        if doctor_id is None:
            raise AuthorizationError("No doctor profile linked to this account")
        return doctor_id

    def _check_author(self, record: MedicalRecord, session: SessionUser) -> None:
        if self._is_doctor(session) and record.doctor_id != self._own_doctor_id(session):
            raise AuthorizationError("Doctors can only modify their own medical records")

    def _require_reader(self, session: SessionUser) -> None:
        if not (session.is_super_admin or session.role_id in READER_ROLES):
            raise AuthorizationError("Access denied to medical records")

    def _require_writer(self, session: SessionUser) -> None:
        if not (session.is_super_admin or session.role_id in WRITER_ROLES):
            raise AuthorizationError("Only doctors and administrators can modify medical records")
