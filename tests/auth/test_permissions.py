"""Tests for auth permissions."""

import pytest

from learnpath.auth.permissions import (
    ROLE_HIERARCHY,
    ActorKind,
    UserRole,
    actor_kind_for_role,
    get_role_level,
    has_permission,
    is_admin,
    is_at_least_teacher,
)


class TestUserRole:
    """Tests for UserRole enum."""

    def test_role_values(self) -> None:
        """Roles should have correct string values."""
        assert UserRole.USER.value == "user"
        assert UserRole.STUDENT.value == "student"
        assert UserRole.EMPLOYEE.value == "employee"
        assert UserRole.TEACHER.value == "teacher"
        assert UserRole.ADMIN.value == "admin"

    def test_all_roles_have_levels(self) -> None:
        """All UserRole members should have defined levels."""
        for role in UserRole:
            assert role in ROLE_HIERARCHY


class TestGetRoleLevel:
    """Tests for get_role_level function."""

    @pytest.mark.parametrize(
        "role,expected_level",
        [
            (UserRole.USER, 0),
            (UserRole.STUDENT, 1),
            (UserRole.EMPLOYEE, 1),
            (UserRole.TEACHER, 2),
            (UserRole.ADMIN, 3),
            ("teacher", 2),
        ],
    )
    def test_levels(self, role: UserRole | str, expected_level: int) -> None:
        """Should return correct level for enum and string roles."""
        assert get_role_level(role) == expected_level

    def test_unknown_role(self) -> None:
        """Unknown roles have no permissions."""
        assert get_role_level("superuser") == 0


class TestHasPermission:
    """Tests for has_permission and helpers."""

    def test_higher_role_passes(self) -> None:
        """Admin should satisfy teacher requirements."""
        assert has_permission(UserRole.ADMIN, UserRole.TEACHER) is True

    def test_learner_cannot_grade(self) -> None:
        """Learners should not pass the teacher gate."""
        assert has_permission("employee", UserRole.TEACHER) is False
        assert is_at_least_teacher("student") is False

    def test_is_admin(self) -> None:
        """is_admin accepts enums and strings."""
        assert is_admin("admin") is True
        assert is_admin(UserRole.TEACHER) is False


class TestActorKind:
    """Tests for actor_kind_for_role."""

    @pytest.mark.parametrize(
        "role,expected",
        [
            ("employee", ActorKind.SPONSORED),
            (UserRole.EMPLOYEE, ActorKind.SPONSORED),
            ("student", ActorKind.DIRECT),
            (UserRole.ADMIN, ActorKind.DIRECT),
            ("user", ActorKind.DIRECT),
        ],
    )
    def test_derived_from_role(self, role: UserRole | str, expected: ActorKind) -> None:
        """Employees act under sponsored access, everyone else directly."""
        assert actor_kind_for_role(role) == expected
