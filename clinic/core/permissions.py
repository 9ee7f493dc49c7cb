"""
Role based permissions.

A user's permission set is never edited on its own: it is derived from the
role by ``permissions_for_role`` and written by ``assign_role``, the single
place where a role is set.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict

from .exceptions import AuthorizationError


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    STAFF = "staff"
    RECEPTIONIST = "receptionist"


class Capability(str, Enum):
    VIEW_PATIENTS = "can_view_patients"
    EDIT_PATIENTS = "can_edit_patients"
    CREATE_APPOINTMENTS = "can_create_appointments"
    MODIFY_APPOINTMENTS = "can_modify_appointments"
    VIEW_REPORTS = "can_view_reports"
    MANAGE_USERS = "can_manage_users"
    ACCESS_FINANCES = "can_access_finances"


@dataclass(frozen=True)
class PermissionSet:
    can_view_patients: bool = False
    can_edit_patients: bool = False
    can_create_appointments: bool = False
    can_modify_appointments: bool = False
    can_view_reports: bool = False
    can_manage_users: bool = False
    can_access_finances: bool = False

    def allows(self, capability: Capability) -> bool:
        return getattr(self, capability.value)

    def as_dict(self) -> Dict[str, bool]:
        return asdict(self)


_ROLE_PERMISSIONS: Dict[Role, PermissionSet] = {
    Role.ADMIN: PermissionSet(
        can_view_patients=True,
        can_edit_patients=True,
        can_create_appointments=True,
        can_modify_appointments=True,
        can_view_reports=True,
        can_manage_users=True,
        can_access_finances=True,
    ),
    Role.DOCTOR: PermissionSet(
        can_view_patients=True,
        can_edit_patients=True,
        can_create_appointments=True,
        can_modify_appointments=True,
        can_view_reports=True,
    ),
    Role.STAFF: PermissionSet(
        can_view_patients=True,
        can_create_appointments=True,
        can_modify_appointments=True,
    ),
    Role.RECEPTIONIST: PermissionSet(
        can_view_patients=True,
        can_create_appointments=True,
        can_modify_appointments=True,
    ),
}


def permissions_for_role(role: Role) -> PermissionSet:
    """Return the fixed permission set of a role."""
    return _ROLE_PERMISSIONS[Role(role)]


def assign_role(user, role: Role) -> None:
    """Set the user's role and overwrite every permission flag to match it."""
    role = Role(role)
    user.role = role
    for name, allowed in permissions_for_role(role).as_dict().items():
        setattr(user, name, allowed)


def authorize(user, capability: Capability) -> bool:
    return permissions_for_role(user.role).allows(capability)


def ensure_authorized(user, capability: Capability) -> None:
    if not authorize(user, capability):
        raise AuthorizationError(
            f"User role {Role(user.role).value} is not authorized to {capability.name.lower().replace('_', ' ')}"
        )
