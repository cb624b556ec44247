"""Caller identity, roles and actor kinds.

Provides:
- JWT access token validation
- Role hierarchy and actor kind derivation
- Read model of the identity service's users table
"""

from .models import AUTH_TABLES_CQL, User
from .permissions import ActorKind, UserRole, actor_kind_for_role


__all__ = [
    "AUTH_TABLES_CQL",
    "ActorKind",
    "User",
    "UserRole",
    "actor_kind_for_role",
]
