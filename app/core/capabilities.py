"""
Role -> capability resolution.

Every permission decision in the workflow services goes through
`has_capability` / `require_capability`; routers and services never compare
role strings directly.
"""
import enum
from typing import Dict, FrozenSet, Optional

from app.core.exceptions import AccessDeniedError
from app.models.user import User, UserRole


class Capability(str, enum.Enum):
    MANAGE_EMPLOYEES = "manage_employees"
    MANAGE_LEAVE_TYPES = "manage_leave_types"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_COMPLAINTS = "manage_complaints"
    MANAGE_ANNOUNCEMENTS = "manage_announcements"
    VIEW_ALL_LEAVES = "view_all_leaves"
    CANCEL_ANY_LEAVE = "cancel_any_leave"
    APPROVE_LEAVES = "approve_leaves"
    DIRECT_APPROVE_LEAVES = "direct_approve_leaves"
    MANAGE_TEAM = "manage_team"
    OVERRIDE_RESERVATIONS = "override_reservations"
    ASSIGN_ROLES = "assign_roles"
    VIEW_AUDIT_LOGS = "view_audit_logs"


_HR_DUTIES = frozenset({
    Capability.MANAGE_EMPLOYEES,
    Capability.MANAGE_LEAVE_TYPES,
    Capability.MANAGE_SETTINGS,
    Capability.MANAGE_COMPLAINTS,
    Capability.MANAGE_ANNOUNCEMENTS,
    Capability.VIEW_ALL_LEAVES,
    Capability.CANCEL_ANY_LEAVE,
    Capability.APPROVE_LEAVES,
    Capability.DIRECT_APPROVE_LEAVES,
})

_MANAGEMENT_DUTIES = frozenset({
    Capability.APPROVE_LEAVES,
    Capability.MANAGE_TEAM,
})

_ADMIN_DUTIES = _HR_DUTIES | _MANAGEMENT_DUTIES | {
    Capability.OVERRIDE_RESERVATIONS,
    Capability.ASSIGN_ROLES,
}

ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.EMPLOYEE: frozenset(),
    UserRole.HR: _HR_DUTIES,
    UserRole.MANAGEMENT: _MANAGEMENT_DUTIES,
    UserRole.ADMIN: frozenset(_ADMIN_DUTIES),
    # Audit logs are the only thing ADMIN cannot see
    UserRole.DEVELOPER: frozenset(_ADMIN_DUTIES | {Capability.VIEW_AUDIT_LOGS}),
}


def capabilities_for(role: Optional[UserRole]) -> FrozenSet[Capability]:
    """Capabilities granted to a role. Unknown or missing roles get none."""
    if role is None:
        return frozenset()
    try:
        return ROLE_CAPABILITIES[UserRole(role)]
    except (KeyError, ValueError):
        return frozenset()


def has_capability(user: Optional[User], capability: Capability) -> bool:
    if user is None:
        return False
    return capability in capabilities_for(user.role)


def require_capability(user: Optional[User], capability: Capability, message: Optional[str] = None) -> None:
    if not has_capability(user, capability):
        raise AccessDeniedError(message or f"Forbidden: '{capability.value}' capability required")
