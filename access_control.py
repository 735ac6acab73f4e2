"""
Role-based access rules for the dashboard read paths.

The identity provider authenticates the caller; this module only decides
what a resolved identity may see. Nothing here reads ambient session state:
every check takes the identity (or role) as an argument.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from academic_records import AuthorizationError

__all__ = [
    "UserRole",
    "Identity",
    "RouteAccess",
    "ROLE_PERMISSIONS",
    "role_from_claims",
    "has_role",
    "can_access_admin",
    "can_access_professor",
    "is_student",
    "require_role",
    "resolve_target_student",
    "check_route_access",
]

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    STUDENT = "student"
    PROFESSOR = "professor"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class RouteAccess(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    UNKNOWN = "unknown"


ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPERADMIN)

# Dashboard area -> roles allowed into it
ROLE_PERMISSIONS: dict[str, tuple[UserRole, ...]] = {
    "academic": (UserRole.STUDENT,),
    "teaching": (UserRole.PROFESSOR, *ADMIN_ROLES),
    "admin": ADMIN_ROLES,
}

# Optional locale segment ("/es", "/en-US"), then the area, then anything below it
_AREA_PATTERNS = {
    area: re.compile(rf"^(?:/[a-z]{{2}}(?:-[A-Z]{{2}})?)?/{area}(?:/.*)?$")
    for area in ROLE_PERMISSIONS
}


@dataclass(frozen=True)
class Identity:
    """A caller already authenticated by the identity provider."""
    user_id: str
    role: UserRole | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def role_from_claims(claims: dict[str, Any] | None) -> UserRole | None:
    """Extract the role from session claims (public, private, then plain metadata)."""
    if not claims:
        return None
    for key in ("publicMetadata", "privateMetadata", "metadata"):
        raw = (claims.get(key) or {}).get("role")
        if not raw:
            continue
        try:
            return UserRole(raw)
        except ValueError:
            logger.warning("Ignoring unknown role claim %r", raw)
            return None
    return None


def has_role(role: UserRole | None, required: Iterable[UserRole]) -> bool:
    return role is not None and role in tuple(required)


def can_access_admin(role: UserRole | None) -> bool:
    return has_role(role, ADMIN_ROLES)


def can_access_professor(role: UserRole | None) -> bool:
    return has_role(role, ROLE_PERMISSIONS["teaching"])


def is_student(role: UserRole | None) -> bool:
    return role == UserRole.STUDENT


def require_role(identity: Identity | None, allowed: Iterable[UserRole]) -> Identity:
    """Return the identity if its role is allowed, else raise AuthorizationError."""
    allowed = tuple(allowed)
    if identity is None:
        raise AuthorizationError("Not authenticated")
    if not has_role(identity.role, allowed):
        raise AuthorizationError(
            f"Role {identity.role.value if identity.role else None!r} may not access "
            f"this resource (requires one of: {', '.join(r.value for r in allowed)})"
        )
    return identity


def resolve_target_student(identity: Identity | None, student_id: str | None = None) -> str:
    """Decide whose records a caller may read.

    Admins may name any student. Students may only name themselves, and
    naming nobody means themselves. Every other role is denied.
    """
    if identity is None:
        raise AuthorizationError("Not authenticated")
    if student_id is None:
        if identity.role != UserRole.STUDENT:
            raise AuthorizationError("Student access required or specify student_id")
        return identity.user_id
    if identity.is_admin:
        return student_id
    if identity.role == UserRole.STUDENT and student_id == identity.user_id:
        return student_id
    raise AuthorizationError("Permission denied")


def check_route_access(path: str, role: UserRole) -> RouteAccess:
    """Gate a dashboard route by role.

    Paths outside every known area are ``UNKNOWN`` so the caller can decide
    (typically: redirect home) instead of silently allowing them.
    """
    for area, pattern in _AREA_PATTERNS.items():
        if pattern.match(path):
            allowed = ROLE_PERMISSIONS[area]
            return RouteAccess.ALLOWED if role in allowed else RouteAccess.DENIED
    return RouteAccess.UNKNOWN
