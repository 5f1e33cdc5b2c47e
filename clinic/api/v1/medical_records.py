from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.security import SessionUser
from ...api.deps import get_audit_service, get_current_session
from ...services.audit_service import AuditService
from ...services.medical_record_service import MedicalRecordService
from ...schemas.medical_record import (
    MedicalRecordCreate, MedicalRecordUpdate, MedicalRecordResponse
)

router = APIRouter(prefix="/medical-records", tags=["Medical Records"])

@router.get("", response_model=List[MedicalRecordResponse])
async def list_medical_records(
    patient_id: Optional[int] = None,
    session: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db)
):
    return MedicalRecordService(db).list_records(session, patient_id=patient_id)

@router.get("/{record_id}", response_model=MedicalRecordResponse)
async def get_medical_record(
    record_id: int,
    session: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db)
):
    return MedicalRecordService(db).get_record(record_id, session)

@router.post("", response_model=MedicalRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_medical_record(
    record_data: MedicalRecordCreate,
    session: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("create", "medical_record", user_id=session.user_id) as operation:
        record = MedicalRecordService(db).create_record(record_data, session)
        operation.resource_id = record.record_id

    return record

@router.put("/{record_id}", response_model=MedicalRecordResponse)
async def update_medical_record(
    record_id: int,
    record_data: MedicalRecordUpdate,
    session: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("update", "medical_record", user_id=session.user_id, resource_id=record_id):
        record = MedicalRecordService(db).update_record(record_id, record_data, session)

    return record

@router.delete("/{record_id}")
async def delete_medical_record(
    record_id: int,
    session: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("delete", "medical_record", user_id=session.user_id, resource_id=record_id):
        MedicalRecordService(db).delete_record(record_id, session)

    return {"message": "Medical record deleted successfully"}
