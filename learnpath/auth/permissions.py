"""Role-based access control and actor kinds.

Hierarchical permission system:
- ADMIN (level 3): Full system access, administrative bulk completion
- TEACHER (level 2): Authors content, grades short answers, manages templates
- STUDENT / EMPLOYEE (level 1): Learners (direct or company-sponsored)
- USER (level 0): Registered user without any enrollment

The actor kind selects which enrollment variant backs a learner's access:
employees learn through company-sponsored access, everyone else through a
direct enrollment.
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical levels."""

    USER = "user"  # Level 0: Basic registered user
    STUDENT = "student"  # Level 1: Individual learner
    EMPLOYEE = "employee"  # Level 1: Learner sponsored by a company
    TEACHER = "teacher"  # Level 2: Course instructor
    ADMIN = "admin"  # Level 3: System administrator


class ActorKind(str, Enum):
    """Enrollment variant a caller acts under."""

    DIRECT = "direct"
    SPONSORED = "sponsored"


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.USER: 0,
    UserRole.STUDENT: 1,
    UserRole.EMPLOYEE: 1,
    UserRole.TEACHER: 2,
    UserRole.ADMIN: 3,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role (0 for unknown roles)."""
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.TEACHER)
        True
        >>> has_permission(UserRole.EMPLOYEE, UserRole.TEACHER)
        False
    """
    return get_role_level(user_role) >= get_role_level(required_role)


def actor_kind_for_role(role: UserRole | str) -> ActorKind:
    """Derive the enrollment variant from the caller's declared role.

    Examples:
        >>> actor_kind_for_role("employee")
        <ActorKind.SPONSORED: 'sponsored'>
        >>> actor_kind_for_role(UserRole.STUDENT)
        <ActorKind.DIRECT: 'direct'>
    """
    value = role.value if isinstance(role, UserRole) else role
    if value == UserRole.EMPLOYEE.value:
        return ActorKind.SPONSORED
    return ActorKind.DIRECT


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    if isinstance(role, str):
        return role == UserRole.ADMIN.value
    return role == UserRole.ADMIN


def is_at_least_teacher(role: UserRole | str) -> bool:
    """Check if role is TEACHER or higher (ADMIN)."""
    return has_permission(role, UserRole.TEACHER)
