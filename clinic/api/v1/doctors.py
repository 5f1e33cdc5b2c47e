from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.ability import Ability, Action, Subject
from ...core.security import SessionUser
from ...api.deps import get_audit_service, get_current_session, require_ability
from ...services.audit_service import AuditService
from ...services.doctor_service import DoctorService
from ...schemas.people import DoctorCreate, DoctorUpdate, DoctorResponse

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorResponse])
async def list_doctors(
    specialty: Optional[str] = None,
    available_only: bool = False,
    _: Ability = Depends(require_ability(Action.READ, Subject.DOCTOR)),
    db: Session = Depends(get_db)
):
    return DoctorService(db).list_doctors(specialty=specialty, available_only=available_only)

@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: int,
    _: Ability = Depends(require_ability(Action.READ, Subject.DOCTOR)),
    db: Session = Depends(get_db)
):
    return DoctorService(db).get_doctor(doctor_id)

@router.post("", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_doctor(
    doctor_data: DoctorCreate,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.CREATE, Subject.DOCTOR)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("create", "doctor", user_id=session.user_id) as operation:
        doctor = DoctorService(db).create_doctor(doctor_data)
        operation.resource_id = doctor.doctor_id

    return doctor

@router.put("/{doctor_id}", response_model=DoctorResponse)
async def update_doctor(
    doctor_id: int,
    doctor_data: DoctorUpdate,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.UPDATE, Subject.DOCTOR)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("update", "doctor", user_id=session.user_id, resource_id=doctor_id):
        doctor = DoctorService(db).update_doctor(doctor_id, doctor_data)

    return doctor

@router.delete("/{doctor_id}")
async def delete_doctor(
    doctor_id: int,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.DELETE, Subject.DOCTOR)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("delete", "doctor", user_id=session.user_id, resource_id=doctor_id):
        DoctorService(db).delete_doctor(doctor_id)

    return {"message": "Doctor deleted successfully"}
