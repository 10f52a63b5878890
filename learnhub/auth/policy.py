"""
Policy Engine
Single owner-or-admin rule set behind every mutating course/lesson/quiz call.

Pure functions - no I/O. Rules, first match wins:
    1. missing or disabled principal -> DENY
    2. admin                         -> ALLOW
    3. owner with an allowed role    -> ALLOW
    4. otherwise                     -> DENY
"""

from enum import Enum
from typing import Iterable, Optional

from learnhub.auth.identity import Principal, Role
from learnhub.errors import Forbidden


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class Action(str, Enum):
    MANAGE_COURSE = "manage_course"      # update/publish/delete course and its lessons/quizzes
    MANAGE_PROFILE = "manage_profile"    # read/update own profile
    TRACK_PROGRESS = "track_progress"    # complete lessons in own enrollment


OWNER_ROLES = {
    Action.MANAGE_COURSE: frozenset({Role.TEACHER}),
    Action.MANAGE_PROFILE: frozenset({Role.ADMIN, Role.TEACHER, Role.STUDENT}),
    Action.TRACK_PROGRESS: frozenset({Role.STUDENT}),
}

# Role-only gates
COURSE_AUTHORS = frozenset({Role.TEACHER, Role.ADMIN})
STUDENTS = frozenset({Role.STUDENT})
ADMINS = frozenset({Role.ADMIN})


def authorize(
    principal: Optional[Principal],
    action: Action,
    resource_owner_id: Optional[str],
) -> Decision:
    if principal is None or principal.is_deleted:
        return Decision.DENY

    if principal.role == Role.ADMIN:
        return Decision.ALLOW

    if (
        resource_owner_id is not None
        and resource_owner_id == principal.id
        and principal.role in OWNER_ROLES.get(action, frozenset())
    ):
        return Decision.ALLOW

    return Decision.DENY


def authorize_role(principal: Optional[Principal], allowed_roles: Iterable[Role]) -> Decision:
    if principal is None or principal.is_deleted:
        return Decision.DENY
    return Decision.ALLOW if principal.role in set(allowed_roles) else Decision.DENY


def is_allowed(principal: Optional[Principal], action: Action, resource_owner_id: Optional[str]) -> bool:
    return authorize(principal, action, resource_owner_id) == Decision.ALLOW


def ensure_authorized(
    principal: Optional[Principal],
    action: Action,
    resource_owner_id: Optional[str],
    message: str = "Not authorized",
) -> None:
    if authorize(principal, action, resource_owner_id) != Decision.ALLOW:
        raise Forbidden(_disabled_message(principal) or message)


def ensure_role(
    principal: Optional[Principal],
    allowed_roles: Iterable[Role],
    message: Optional[str] = None,
) -> None:
    allowed = frozenset(allowed_roles)
    if authorize_role(principal, allowed) != Decision.ALLOW:
        names = ", ".join(sorted(r.value for r in allowed))
        raise Forbidden(
            _disabled_message(principal) or message or f"Access denied. Required role(s): {names}"
        )


def _disabled_message(principal: Optional[Principal]) -> Optional[str]:
    if principal is not None and principal.is_deleted:
        return "Account disabled. Contact admin."
    return None
