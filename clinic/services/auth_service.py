from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
import logging
import secrets

from ..models.user import User
from ..core.config import settings
from ..core.roles import RoleId, role_name_for, is_super_admin_role
from ..core.security import (
    verify_password, get_password_hash, create_session_token,
    SessionUser, AuthenticationError
)
from ..core.exceptions import ValidationError
from ..schemas.auth import UserLogin, TokenResponse, SessionResponse, ChangePassword

logger = logging.getLogger(__name__)

def _matches(configured: Optional[str], given: str) -> bool:
    return bool(configured) and secrets.compare_digest(configured, given)

def session_response(session: SessionUser) -> SessionResponse:
    role = role_name_for(session.role_id)
    return SessionResponse(
        user_id=session.user_id,
        email=session.email,
        name=session.name,
        role_id=session.role_id,
        role=role.value if role else None,
        is_admin=session.is_admin,
    )

class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate against the built-in accounts, then the users table."""
        session = self._builtin_session(login_data.email, login_data.password)

        if session is None:
            user = self.db.query(User).filter(
                func.lower(User.email) == login_data.email.lower()
            ).first()

            if not user or not verify_password(login_data.password, user.password_hash):
                logger.info(f"Failed login for {login_data.email}")
                raise AuthenticationError("Invalid email or password")

            if not user.is_active:
                raise AuthenticationError("Account is deactivated")

            user.last_login = datetime.utcnow()
            self.db.commit()
            session = self.session_for_user(user)

        token = create_session_token(session)
        return TokenResponse(
            access_token=token.access_token,
            token_type=token.token_type,
            expires_in=token.expires_in,
            user=session_response(session)
        )

    def session_for_user(self, user: User) -> SessionUser:
        return SessionUser(
            user_id=user.user_id,
            email=user.email,
            name=user.username,
            role_id=user.role_id,
            is_admin=bool(user.is_admin) or is_super_admin_role(user.role_id),
        )

    def _builtin_session(self, email: str, password: str) -> Optional[SessionUser]:
        if _matches(settings.ADMIN_EMAIL, email) and _matches(settings.ADMIN_PASSWORD, password):
            return SessionUser(
                user_id=int(RoleId.SUPER_ADMIN),
                email=email,
                name="Super Admin",
                role_id=int(RoleId.SUPER_ADMIN),
                is_admin=True,
            )

        if _matches(settings.GUEST_EMAIL, email) and _matches(settings.GUEST_PASSWORD, password):
            return SessionUser(
                user_id=int(RoleId.GUEST),
                email=email,
                name="Guest User",
                role_id=int(RoleId.GUEST),
                is_admin=False,
            )

        return None

    def change_password(self, session: SessionUser, password_data: ChangePassword) -> None:
        user = self.db.query(User).filter(User.user_id == session.user_id).first()
        if not user:
            raise ValidationError("Password of built-in accounts is set through configuration")

        if not verify_password(password_data.current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")

        user.password_hash = get_password_hash(password_data.new_password)
        self.db.commit()
