"""Platform and course role rules."""
import pytest

from portal.domain.access.rbac import (
    has_course_permission,
    has_permission,
    normalize_role,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Teacher", "instructor"),
        ("mod", "moderator"),
        ("superadmin", "super_admin"),
        ("user", "student"),
        ("wizard", "student"),
        (None, "student"),
    ],
)
def test_normalize_role(raw, expected):
    assert normalize_role(raw) == expected


def test_platform_permissions():
    assert has_permission("instructor", "courses.create")
    assert has_permission("instructor", "courses.manage")
    assert not has_permission("admin", "courses.manage")
    assert has_permission("admin", "users.manage_roles")
    assert not has_permission("student", "courses.create")


def test_course_permissions():
    assert has_course_permission("instructor", "enrollments.manage")
    assert not has_course_permission("student", "enrollments.manage")
    assert not has_course_permission(None, "events.manage")
