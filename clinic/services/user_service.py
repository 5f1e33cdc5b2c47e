from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List
import logging

from ..core.ability import ROLE_RULES
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.ids import ID_PREFIXES, make_id, next_id
from ..core.roles import ROLE_DESCRIPTIONS, is_super_admin_role, role_name_for
from ..core.security import get_password_hash
from ..models.role import Role, RolePermission
from ..models.user import User
from ..schemas.auth import (
    PermissionRowResponse, UserCreate, UserPermissionsResponse, UserUpdate
)

logger = logging.getLogger(__name__)

def seed_roles(db: Session) -> List[Role]:
    """
    Create the clinic roles and their permission rows when missing.

    Permission rows mirror the static role table so both permission sources
    grant the same access out of the box.
    """
    created = []
    sequence = 0
    for role_id, description in ROLE_DESCRIPTIONS.items():
        role_name = role_name_for(role_id)
        if db.query(Role).filter(Role.role_id == int(role_id)).first():
            sequence += len(ROLE_RULES[role_name])
            continue

        role = Role(role_id=int(role_id), name=role_name.value, description=description, is_active=1)
        for action, subject in ROLE_RULES[role_name]:
            sequence += 1
            role.permissions.append(RolePermission(
                permission_id=make_id(ID_PREFIXES["ROLE_PERMISSION"], sequence),
                subject=subject.value.upper(),
                action=action.value.upper(),
                can_access=1,
            ))
        db.add(role)
        created.append(role)

    if created:
        db.commit()
        logger.info(f"Seeded roles: {', '.join(r.name for r in created)}")
    return created

class UserService:
    def __init__(self, db: Session):
        self.db = db

    def list_roles(self) -> List[Role]:
        return self.db.query(Role).filter(Role.is_active == 1).order_by(Role.role_id).all()

    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.user_id).all()

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.user_id == user_id).first()
        if not user:
            raise NotFoundError("User")
        return user

    def create_user(self, user_data: UserCreate) -> User:
        self._check_role(user_data.role_id)
        self._check_unique(user_data.username, user_data.email)

        user = User(
            user_id=next_id(self.db, User.user_id, ID_PREFIXES["USER"]),
            username=user_data.username,
            email=user_data.email.lower(),
            password_hash=get_password_hash(user_data.password),
            full_name=user_data.full_name,
            role_id=user_data.role_id,
            is_admin=is_super_admin_role(user_data.role_id),
            is_active=True,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_user(self, user_id: int, user_data: UserUpdate) -> User:
        user = self.get_user(user_id)

        changes = user_data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if "role_id" in changes:
            self._check_role(changes["role_id"])
            user.is_admin = is_super_admin_role(changes["role_id"])
        if "email" in changes:
            changes["email"] = changes["email"].lower()
        self._check_unique(changes.get("username"), changes.get("email"), exclude_id=user_id)

        for field, value in changes.items():
            setattr(user, field, value)

        self.db.commit()
        self.db.refresh(user)
        return user

    def delete_user(self, user_id: int) -> User:
        user = self.get_user(user_id)
        self.db.delete(user)
        self.db.commit()
        return user

    def permissions_for_user(self, user_id: int) -> UserPermissionsResponse:
        user = self.get_user(user_id)
        if not user.role:
            raise NotFoundError("Role")

        return UserPermissionsResponse(
            user_id=user.user_id,
            username=user.username,
            full_name=user.full_name,
            role_name=user.role.name,
            permissions=[
                PermissionRowResponse(
                    subject=p.subject,
                    action=p.action,
                    field_name=p.field_name,
                    can_access=p.can_access,
                )
                for p in user.role.permissions
            ],
        )

    def _check_role(self, role_id: int) -> None:
        if not self.db.query(Role).filter(Role.role_id == role_id).first():
            raise ValidationError("Role does not exist")

    def _check_unique(self, username, email, exclude_id=None) -> None:
        if username:
            query = self.db.query(User).filter(func.lower(User.username) == username.lower())
            if exclude_id is not None:
                query = query.filter(User.user_id != exclude_id)
            if query.first():
                raise ConflictError("Username already taken")
        if email:
            query = self.db.query(User).filter(func.lower(User.email) == email.lower())
            if exclude_id is not None:
                query = query.filter(User.user_id != exclude_id)
            if query.first():
                raise ConflictError("Email already registered")
