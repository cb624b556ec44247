"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current caller extraction from the JWT bearer token
- Role-based access control
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from learnpath.auth.permissions import UserRole, has_permission
from learnpath.auth.schemas import CurrentUserResponse
from learnpath.auth.security import decode_access_token
from learnpath.core.middleware import set_caller_context


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> CurrentUserResponse:
    """Get the authenticated caller from the JWT access token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user = CurrentUserResponse.from_claims(payload)
    set_caller_context(str(user.id), user.actor_kind.value)
    return user


def require_permission(required_role: UserRole):
    """Create dependency requiring at least a permission level.

    Example:
        @router.post("/attempts/{attempt_id}/grade")
        async def grade(
            user: Annotated[CurrentUserResponse, Depends(require_permission(UserRole.TEACHER))]
        ):
            ...
    """

    async def permission_checker(
        user: Annotated[CurrentUserResponse, Depends(get_current_user)],
    ) -> CurrentUserResponse:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permission",
            )
        return user

    return permission_checker


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentUser = Annotated[CurrentUserResponse, Depends(get_current_user)]
TeacherUser = Annotated[
    CurrentUserResponse, Depends(require_permission(UserRole.TEACHER))
]
AdminUser = Annotated[CurrentUserResponse, Depends(require_permission(UserRole.ADMIN))]
