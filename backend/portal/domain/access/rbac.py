"""Static role → permission mapping shared by every handler."""
from __future__ import annotations
from typing import Optional

# Legacy spellings still found on stored accounts / token claims.
_ROLE_ALIASES: dict[str, str] = {
    "super_admin": "super_admin",
    "superadmin": "super_admin",
    "super-admin": "super_admin",
    "admin": "admin",
    "moderator": "moderator",
    "mod": "moderator",
    "instructor": "instructor",
    "teacher": "instructor",
    "student": "student",
    "user": "student",
}

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "super_admin": frozenset({
        "users.read",
        "users.manage_roles",
        "users.manage_status",
        "resources.moderate",
        "audit.read",
        "system.health.read",
    }),
    "admin": frozenset({
        "users.read",
        "users.manage_roles",
        "users.manage_status",
        "resources.moderate",
        "audit.read",
        "system.health.read",
    }),
    "moderator": frozenset({"users.read", "resources.moderate", "audit.read"}),
    "instructor": frozenset({"courses.create", "courses.manage", "calendar.manage"}),
    "student": frozenset(),
}

COURSE_PERMISSIONS: dict[str, frozenset[str]] = {
    "instructor": frozenset({"enrollments.manage", "events.manage"}),
    "student": frozenset(),
}


def normalize_role(role: Optional[str]) -> str:
    """Map any stored/claimed role string onto a platform role. Unknown → student."""
    r = (role or "").strip().lower()
    return _ROLE_ALIASES.get(r, "student")


def has_permission(role: Optional[str], permission: str) -> bool:
    return permission in ROLE_PERMISSIONS[normalize_role(role)]


def has_course_permission(course_role: Optional[str], permission: str) -> bool:
    return permission in COURSE_PERMISSIONS.get(course_role or "", frozenset())
