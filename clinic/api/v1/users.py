from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...core.ability import Ability, Action, Subject
from ...core.security import AuthorizationError, SessionUser
from ...api.deps import get_ability, get_audit_service, get_current_session, require_ability
from ...services.audit_service import AuditService
from ...services.user_service import UserService
from ...schemas.auth import (
    RoleResponse, UserCreate, UserUpdate, UserResponse, UserPermissionsResponse
)

router = APIRouter(tags=["Users"])

@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    _: SessionUser = Depends(get_current_session),
    db: Session = Depends(get_db)
):
    return UserService(db).list_roles()

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    _: Ability = Depends(require_ability(Action.READ, Subject.USER)),
    db: Session = Depends(get_db)
):
    return UserService(db).list_users()

@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    _: Ability = Depends(require_ability(Action.READ, Subject.USER)),
    db: Session = Depends(get_db)
):
    return UserService(db).get_user(user_id)

@router.get("/users/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: int,
    session: SessionUser = Depends(get_current_session),
    ability: Ability = Depends(get_ability),
    db: Session = Depends(get_db)
):
    """Stored permission rows of a user's role; readable by the user themselves."""
    if session.user_id != user_id and not ability.can(Action.READ, Subject.USER):
        raise AuthorizationError("Access denied. Required permission: read User")
    return UserService(db).permissions_for_user(user_id)

@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.MANAGE, Subject.USER)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("create", "user", user_id=session.user_id) as operation:
        user = UserService(db).create_user(user_data)
        operation.resource_id = user.user_id

    return user

@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.MANAGE, Subject.USER)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("update", "user", user_id=session.user_id, resource_id=user_id):
        user = UserService(db).update_user(user_id, user_data)

    return user

@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    session: SessionUser = Depends(get_current_session),
    _: Ability = Depends(require_ability(Action.MANAGE, Subject.USER)),
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
):
    with audit.track("delete", "user", user_id=session.user_id, resource_id=user_id):
        UserService(db).delete_user(user_id)

    return {"message": "User deleted successfully"}
