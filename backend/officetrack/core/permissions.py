"""Role/capability table.

Every role check in the service goes through ``is_allowed`` so the
Forbidden responses stay consistent across routes and services.
"""

from enum import Enum

from officetrack.core.exceptions import Forbidden


class Role(str, Enum):
    ADMIN = "admin"
    HR = "hr"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class Action(str, Enum):
    TIME_TRACK = "time.track"
    TIME_VIEW_TEAM = "time.view_team"
    TIME_MANUAL_ENTRY = "time.manual_entry"
    LEAVE_APPLY = "leave.apply"
    LEAVE_DECIDE = "leave.decide"
    LEAVE_CANCEL_ANY = "leave.cancel_any"
    LEAVE_VIEW_ALL = "leave.view_all"
    LEAVE_VIEW_TEAM = "leave.view_team"
    LEAVE_ALLOCATE = "leave.allocate"
    LEAVE_TYPE_MANAGE = "leave_type.manage"


ALL_ROLES = frozenset(Role)

CAPABILITIES: dict[Action, frozenset[Role]] = {
    Action.TIME_TRACK: ALL_ROLES,
    Action.TIME_VIEW_TEAM: frozenset({Role.ADMIN, Role.HR}),
    Action.TIME_MANUAL_ENTRY: frozenset({Role.ADMIN, Role.MANAGER}),
    Action.LEAVE_APPLY: ALL_ROLES,
    # managers are read-only on leave decisions
    Action.LEAVE_DECIDE: frozenset({Role.ADMIN}),
    Action.LEAVE_CANCEL_ANY: frozenset({Role.ADMIN}),
    Action.LEAVE_VIEW_ALL: frozenset({Role.ADMIN, Role.HR}),
    Action.LEAVE_VIEW_TEAM: frozenset({Role.ADMIN, Role.HR, Role.MANAGER}),
    Action.LEAVE_ALLOCATE: frozenset({Role.ADMIN, Role.HR}),
    Action.LEAVE_TYPE_MANAGE: frozenset({Role.ADMIN}),
}


def is_allowed(role: str, action: Action) -> bool:
    try:
        role_value = Role(role)
    except ValueError:
        return False
    return role_value in CAPABILITIES.get(action, frozenset())


def ensure_allowed(role: str, action: Action) -> None:
    if not is_allowed(role, action):
        raise Forbidden(f"Role '{role}' is not allowed to perform '{action.value}'")
