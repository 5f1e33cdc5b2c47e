from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional
import logging

from ..core.ability import (
    Ability, PermissionRule, create_ability,
    define_ability_rules_for, map_permission_rows
)
from ..core.roles import RoleId, RoleName, role_name_for
from ..core.security import SessionUser
from ..models.user import User

logger = logging.getLogger(__name__)

PERMISSION_SOURCES = ("static", "database")

class AbilityService:
    """Builds the per-request Ability for a session."""

    def __init__(self, db: Session, source: str = "static"):
        if source not in PERMISSION_SOURCES:
            raise ValueError(f"Unknown permission source: {source}")
        self.db = db
        self.source = source

    def rules_for_session(self, session: Optional[SessionUser]) -> List[PermissionRule]:
        if session is None:
            return []

        # Built-in accounts have no user row
        if session.user_id == RoleId.SUPER_ADMIN and session.role_id == RoleId.SUPER_ADMIN:
            return define_ability_rules_for(RoleName.SUPERADMIN)
        if session.user_id == RoleId.GUEST:
            return define_ability_rules_for(RoleName.GUEST)

        if self.source == "database":
            return self.fetch_rules_from_db(session.user_id)
        return define_ability_rules_for(role_name_for(session.role_id))

    def fetch_rules_from_db(self, user_id: int) -> List[PermissionRule]:
        """Rules from the user's role grants; any lookup failure yields no rules."""
        try:
            user = self.db.query(User).filter(User.user_id == user_id).first()
            if not user or not user.role:
                logger.warning(f"No role found for user {user_id}, denying all")
                return []
            rows = [permission.as_row() for permission in user.role.permissions]
        except SQLAlchemyError:
            logger.exception(f"Failed to load permissions for user {user_id}, denying all")
            return []

        return map_permission_rows(rows)

    def ability_for(self, session: Optional[SessionUser]) -> Ability:
        return create_ability(self.rules_for_session(session))
