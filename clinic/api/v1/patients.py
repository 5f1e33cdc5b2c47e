from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
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
from ...services.patient_service import PatientService
from ...schemas.people import PatientCreate, PatientUpdate, PatientResponse

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.get("", response_model=List[PatientResponse])
async def list_patients(
    search: Optional[str] = None,
    scope: RecordScope = Depends(get_record_scope),
    _: Ability = Depends(require_ability(Action.READ, Subject.PATIENT)),
    db: Session = Depends(get_db)
):
    """List patients; patient accounts only see their own record."""
    if scope.empty:
        return []
    return PatientService(db).list_patients(search=search, patient_id=scope.patient_id)

@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: int,
    scope: RecordScope = Depends(get_record_scope),
    _: Ability = Depends(require_ability(Action.READ, Subject.PATIENT)),
    db: Session = Depends(get_db)
):
    if scope.empty or (scope.patient_id is not None and scope.patient_id != patient_id):
        raise NotFoundError("Patient")
    return PatientService(db).get_patient(patient_id)

@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.CREATE, Subject.PATIENT)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("create", "patient", user_id=session.user_id) as operation:
        patient = PatientService(db).create_patient(patient_data)
        operation.resource_id = patient.patient_id

    return patient

@router.put("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: int,
    patient_data: PatientUpdate,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.UPDATE, Subject.PATIENT)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("update", "patient", user_id=session.user_id, resource_id=patient_id):
        patient = PatientService(db).update_patient(patient_id, patient_data)

    return patient

@router.delete("/{patient_id}")
async def delete_patient(
    patient_id: int,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.DELETE, Subject.PATIENT)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("delete", "patient", user_id=session.user_id, resource_id=patient_id):
        PatientService(db).delete_patient(patient_id)

    return {"message": "Patient deleted successfully"}
