"""
Role identifiers shared by the session layer, the ability builder and the
route gates.

Numeric ids are the ones stored in ``users.role_id`` by existing
deployments; every comparison against a raw role number goes through this
module.
"""

import enum
from typing import Optional


class RoleId(enum.IntEnum):
    SUPER_ADMIN = 0      # env-configured credential, no database row
    SUPERADMIN = 211
    ADMIN = 212
    DOCTOR = 213
    PATIENT = 216
    GUEST = -1


class RoleName(str, enum.Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"
    GUEST = "guest"


ROLE_NAMES = {
    RoleId.SUPER_ADMIN: RoleName.SUPERADMIN,
    RoleId.SUPERADMIN: RoleName.SUPERADMIN,
    RoleId.ADMIN: RoleName.ADMIN,
    RoleId.DOCTOR: RoleName.DOCTOR,
    RoleId.PATIENT: RoleName.PATIENT,
    RoleId.GUEST: RoleName.GUEST,
}

SUPER_ADMIN_ROLE_IDS = frozenset({RoleId.SUPER_ADMIN, RoleId.SUPERADMIN})

# Rows seeded into the roles table
ROLE_DESCRIPTIONS = {
    RoleId.SUPERADMIN: "Full access to every resource",
    RoleId.ADMIN: "Clinic administration",
    RoleId.DOCTOR: "Medical staff",
    RoleId.PATIENT: "Registered patient",
}


def role_name_for(role_id: Optional[int]) -> Optional[RoleName]:
    """Map a numeric role id to its role name, None when unknown."""
    if role_id is None:
        return None
    try:
        return ROLE_NAMES[RoleId(role_id)]
    except ValueError:
        return None


def is_super_admin_role(role_id: Optional[int]) -> bool:
    return role_id is not None and role_id in SUPER_ADMIN_ROLE_IDS
