from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.ability import Ability
from ...core.roles import role_name_for
from ...core.security import AuthenticationError, SessionUser
from ...api.deps import get_ability, get_audit_service, get_current_session
from ...services.audit_service import AuditService
from ...services.auth_service import AuthService, session_response
from ...schemas.auth import (
    UserLogin, TokenResponse, SessionResponse, ChangePassword,
    AbilityResponse, PermissionRuleResponse
)

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    """Authenticate user and return an access token."""
    auth_service = AuthService(db)
    try:
        token = auth_service.authenticate_user(login_data)
    except AuthenticationError as e:
        audit.failure("login", "auth", str(e.detail), details=login_data.email)
        raise

    audit.success("login", "auth", user_id=token.user.user_id)
    return token

@router.get("/me", response_model=SessionResponse)
async def get_current_user_info(
    session: SessionUser = Depends(get_current_session)
):
    """Get current user information."""
    return session_response(session)

@router.get("/ability", response_model=AbilityResponse)
async def get_current_ability(
    session: SessionUser = Depends(get_current_session),
    ability: Ability = Depends(get_ability)
):
    """Permission rules granted to the current user."""
    role = role_name_for(session.role_id)
    return AbilityResponse(
        role=role.value if role else None,
        rules=[PermissionRuleResponse(**rule) for rule in ability.to_list()]
    )

@router.post("/change-password")
async def change_password(
    password_data: ChangePassword,
    session: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    """Change user password."""
    with audit.track("change_password", "user", user_id=session.user_id, resource_id=session.user_id):
        AuthService(db).change_password(session, password_data)

    return {"message": "Password changed successfully"}
