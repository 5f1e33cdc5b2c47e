from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional

from ...core.database import get_db
from ...core.ability import Ability, Action, Subject
from ...core.exceptions import NotFoundError
from ...core.security import AuthorizationError, SessionUser
from ...api.deps import (
    RecordScope, get_audit_service, get_current_session,
    get_record_scope, require_ability
)
from ...services.appointment_service import AppointmentService
from ...services.audit_service import AuditService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, AppointmentStatusUpdate, AppointmentResponse
)
from ...schemas.invoice import PaymentUpdate

router = APIRouter(prefix="/appointments", tags=["Appointments"])

def _get_visible(service: AppointmentService, appointment_id: int, scope: RecordScope):
    appointment = service.get_appointment(appointment_id)
    if not scope.allows(appointment.patient_id, appointment.doctor_id):
        raise NotFoundError("Appointment")
    return appointment

@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    schedule_date: Optional[date] = None,
    specialty: Optional[str] = None,
    appointment_status: Optional[str] = None,
    scope: RecordScope = Depends(get_record_scope),
    _: Ability = Depends(require_ability(Action.READ, Subject.APPOINTMENT)),
    db: Session = Depends(get_db)
):
    """List appointments visible to the caller."""
    if scope.empty:
        return []

    return AppointmentService(db).list_appointments(
        patient_id=scope.patient_id if scope.patient_id is not None else patient_id,
        doctor_id=scope.doctor_id if scope.doctor_id is not None else doctor_id,
        schedule_date=schedule_date,
        specialty=specialty,
        status=appointment_status,
    )

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    scope: RecordScope = Depends(get_record_scope),
    _: Ability = Depends(require_ability(Action.READ, Subject.APPOINTMENT)),
    db: Session = Depends(get_db)
):
    return _get_visible(AppointmentService(db), appointment_id, scope)

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    session: SessionUser = Depends(get_current_session),
    scope: RecordScope = Depends(get_record_scope),
    _: Ability = Depends(require_ability(Action.CREATE, Subject.APPOINTMENT)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    """Book an appointment priced from the doctor's fees."""
    with audit.track("create", "appointment", user_id=session.user_id) as operation:
        if not scope.allows(appointment_data.patient_id):
            raise AuthorizationError("Patients can only book their own appointments")
        appointment = AppointmentService(db).create_appointment(appointment_data)
        operation.resource_id = appointment.appointment_id

    return appointment

@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    appointment_data: AppointmentUpdate,
    session: SessionUser = Depends(get_current_session),
    scope: RecordScope = Depends(get_record_scope),
    ability: Ability = Depends(require_ability(Action.UPDATE, Subject.APPOINTMENT)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    service = AppointmentService(db)
    with audit.track("update", "appointment", user_id=session.user_id, resource_id=appointment_id):
        _get_visible(service, appointment_id, scope)
        appointment = service.update_appointment(appointment_id, appointment_data, session, ability)

    return appointment

@router.put("/{appointment_id}/payment", response_model=AppointmentResponse)
async def update_appointment_payment(
    appointment_id: int,
    payment_data: PaymentUpdate,
    session: SessionUser = Depends(get_current_session),
    scope: RecordScope = Depends(get_record_scope),
    ability: Ability = Depends(require_ability(Action.UPDATE, Subject.APPOINTMENT)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    """Record the paid amount; the payment status follows from it."""
    service = AppointmentService(db)
    with audit.track("update_payment", "appointment", user_id=session.user_id, resource_id=appointment_id) as operation:
        _get_visible(service, appointment_id, scope)
        appointment = service.update_payment(
            appointment_id,
            payment_data.paid_amount,
            payment_data.payment_method,
            session,
            ability,
        )
        operation.details = f"paid_amount={appointment.paid_amount} status={appointment.payment_status}"

    return appointment

@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    status_data: AppointmentStatusUpdate,
    session: SessionUser = Depends(get_current_session),
    scope: RecordScope = Depends(get_record_scope),
    _: Ability = Depends(require_ability(Action.UPDATE, Subject.APPOINTMENT)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    """Change the status only."""
    service = AppointmentService(db)
    with audit.track("update_status", "appointment", user_id=session.user_id, resource_id=appointment_id) as operation:
        _get_visible(service, appointment_id, scope)
        appointment = service.update_status(appointment_id, status_data.status)
        operation.details = f"status={appointment.status}"

    return appointment

@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    session: SessionUser = Depends(get_current_session),
    scope: RecordScope = Depends(get_record_scope),
    ability: Ability = Depends(require_ability(Action.DELETE, Subject.APPOINTMENT)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    service = AppointmentService(db)
    with audit.track("delete", "appointment", user_id=session.user_id, resource_id=appointment_id):
        _get_visible(service, appointment_id, scope)
        service.delete_appointment(appointment_id, session, ability)

    return {"message": "Appointment deleted successfully"}
