from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from ..core.config import settings
from ..core.database import get_db
from ..core.ability import Ability, Action, Subject
from ..core.rate_limit import get_client_ip
from ..core.roles import RoleId
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, SessionUser, TokenPayload
)
from ..models.user import User
from ..services.ability_service import AbilityService
from ..services.audit_service import AuditService
from ..services.doctor_service import DoctorService
from ..services.patient_service import PatientService

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

async def get_current_session(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> SessionUser:
    """Resolve the caller's session; database users must still exist and be active."""
    if token_payload.sub is None:
        raise AuthenticationError("Invalid token payload")

    builtin_ids = (RoleId.SUPER_ADMIN, RoleId.GUEST)
    if token_payload.sub in builtin_ids and token_payload.role_id == token_payload.sub:
        return SessionUser(
            user_id=token_payload.sub,
            email=token_payload.email,
            role_id=token_payload.role_id,
            is_admin=token_payload.is_admin,
        )

    user = db.query(User).filter(User.user_id == token_payload.sub).first()
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return SessionUser(
        user_id=user.user_id,
        email=user.email,
        name=user.username,
        role_id=user.role_id,
        is_admin=bool(user.is_admin),
    )

async def get_ability(
    session: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db)
) -> Ability:
    """Ability for the current request, built once per request."""
    return AbilityService(db, settings.PERMISSION_SOURCE).ability_for(session)

def get_audit_service(
    request: Request,
    db: Session = Depends(get_db)
) -> AuditService:
    """Audit writer bound to the caller's address and user agent."""
    peer = request.client.host if request.client else None
    return AuditService(
        db,
        ip_address=get_client_ip(request.headers, fallback=peer),
        user_agent=request.headers.get("user-agent"),
    )

# Audit labels for requests refused by the ability check
AUDIT_ACTIONS = {"POST": "create", "PUT": "update", "PATCH": "update", "DELETE": "delete"}
AUDIT_RESOURCE_TYPES = {Subject.INVOICES: "invoice"}

def _path_resource_id(request: Request) -> Optional[int]:
    for value in request.path_params.values():
        if str(value).lstrip("-").isdigit():
            return int(value)
    return None

# Ability-based access control dependencies
def require_ability(action: Action, subject: Subject):
    """Create a dependency that requires an ability grant; refused writes are audited."""
    async def ability_checker(
        request: Request,
        session: SessionUser = Depends(get_current_session),
        ability: Ability = Depends(get_ability),
        audit: AuditService = Depends(get_audit_service)
    ) -> Ability:
        if not ability.can(action, subject):
            detail = f"Access denied. Required permission: {action.value} {subject.value}"
            audit_action = AUDIT_ACTIONS.get(request.method)
            if audit_action is not None:
                audit.failure(
                    audit_action,
                    AUDIT_RESOURCE_TYPES.get(subject, subject.value.lower()),
                    detail,
                    user_id=session.user_id,
                    resource_id=_path_resource_id(request),
                )
            raise AuthorizationError(detail)
        return ability

    return ability_checker
class RecordScope:
    """Rows a caller may list: everything, one patient's, one doctor's, or nothing."""

    def __init__(self, patient_id: Optional[int] = None, doctor_id: Optional[int] = None, empty: bool = False):
        self.patient_id = patient_id
        self.doctor_id = doctor_id
        self.empty = empty

    def allows(self, patient_id: Optional[int], doctor_id: Optional[int] = None) -> bool:
        if self.empty:
            return False
        if self.patient_id is not None and patient_id != self.patient_id:
            return False
        if self.doctor_id is not None and doctor_id != self.doctor_id:
            return False
        return True

async def get_record_scope(
    session: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db)
) -> RecordScope:
    """Patients see their own rows; doctors linked by email see theirs."""
    if session.is_super_admin:
        return RecordScope()

    if session.role_id == RoleId.PATIENT:
        patient_id = PatientService(db).find_id_by_email(session.email)
        if patient_id is None:
            return RecordScope(empty=True)
        return RecordScope(patient_id=patient_id)

    if session.role_id == RoleId.DOCTOR:
        doctor_id = DoctorService(db).find_id_by_email(session.email)
        if doctor_id is not None:
            return RecordScope(doctor_id=doctor_id)

    return RecordScope()
