from __future__ import annotations

from enum import Enum

from .enums import Role
from .exceptions import AuthorizationError


class Action(str, Enum):
    PUNCH_SELF = "punch_self"
    PUNCH_FOR_OTHERS = "punch_for_others"
    ISSUE_TOKEN = "issue_token"
    SUBMIT_REQUEST = "submit_request"
    DECIDE_REQUEST = "decide_request"
    LIST_PENDING_REQUESTS = "list_pending_requests"
    APPROVE_TIMBRATURA = "approve_timbratura"
    VIEW_OWN_TIMBRATURE = "view_own_timbrature"
    VIEW_TODAY_TIMBRATURE = "view_today_timbrature"
    VIEW_ALL_TIMBRATURE = "view_all_timbrature"
    VIEW_OWN_STATISTICS = "view_own_statistics"
    VIEW_ANY_STATISTICS = "view_any_statistics"
    EXPORT_PERIOD = "export_period"


_ALL_ROLES = frozenset(Role)
_APPROVERS = frozenset({Role.MANAGER, Role.ADMIN})

_POLICY: dict[Action, frozenset[Role]] = {
    Action.PUNCH_SELF: _ALL_ROLES,
    Action.PUNCH_FOR_OTHERS: frozenset({Role.RECEPTIONIST, Role.ADMIN}),
    Action.ISSUE_TOKEN: frozenset({Role.RECEPTIONIST, Role.MANAGER, Role.ADMIN}),
    Action.SUBMIT_REQUEST: _ALL_ROLES,
    Action.DECIDE_REQUEST: _APPROVERS,
    Action.LIST_PENDING_REQUESTS: _APPROVERS,
    Action.APPROVE_TIMBRATURA: _APPROVERS,
    Action.VIEW_OWN_TIMBRATURE: _ALL_ROLES,
    Action.VIEW_TODAY_TIMBRATURE: frozenset({Role.RECEPTIONIST, Role.MANAGER, Role.ADMIN}),
    Action.VIEW_ALL_TIMBRATURE: _APPROVERS,
    Action.VIEW_OWN_STATISTICS: _ALL_ROLES,
    Action.VIEW_ANY_STATISTICS: _APPROVERS,
    Action.EXPORT_PERIOD: _APPROVERS,
}

_DENIED_MESSAGES = {
    Action.PUNCH_FOR_OTHERS: "only receptionist or admin can punch for another employee",
    Action.ISSUE_TOKEN: "only receptionist, manager or admin can issue kiosk tokens",
    Action.DECIDE_REQUEST: "only manager or admin can decide requests",
    Action.LIST_PENDING_REQUESTS: "only manager or admin can list pending requests",
    Action.APPROVE_TIMBRATURA: "only manager or admin can approve attendance records",
    Action.VIEW_TODAY_TIMBRATURE: "only receptionist, manager or admin can see today's entries",
    Action.VIEW_ALL_TIMBRATURE: "only manager or admin can browse all attendance records",
    Action.VIEW_ANY_STATISTICS: "only manager or admin can view other employees' statistics",
    Action.EXPORT_PERIOD: "only manager or admin can export payroll data",
}


def allowed_roles(action: Action) -> frozenset[Role]:
    return _POLICY[action]


def is_allowed(action: Action, role: Role) -> bool:
    return Role(role) in _POLICY[action]


def require(action: Action, role: Role) -> None:
    """Raise AuthorizationError unless ``role`` may perform ``action``."""
    if not is_allowed(action, role):
        raise AuthorizationError(_DENIED_MESSAGES.get(action, f"role not allowed: {action.value}"))
