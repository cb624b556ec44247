"""FastAPI dependencies for test attempts.

Provides dependency injection for:
- Attempt service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AttemptError, AttemptService


async def get_attempt_service(request: Request) -> AttemptService:
    """Get attempt service from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "attempt_service") or not app_state.attempt_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Attempt service not available",
        )
    return app_state.attempt_service


# Type alias for dependency injection
AttemptServiceDep = Annotated[AttemptService, Depends(get_attempt_service)]


def handle_attempt_error(error: AttemptError) -> HTTPException:
    """Convert attempt errors to HTTP exceptions."""
    status_map = {
        "attempt_not_found": status.HTTP_404_NOT_FOUND,
        "response_not_found": status.HTTP_404_NOT_FOUND,
        "duplicate_attempt": status.HTTP_409_CONFLICT,
        "already_graded": status.HTTP_409_CONFLICT,
        "grading_conflict": status.HTTP_409_CONFLICT,
        "invalid_question": status.HTTP_400_BAD_REQUEST,
        "invalid_grading_target": status.HTTP_400_BAD_REQUEST,
        "marks_exceeded": status.HTTP_400_BAD_REQUEST,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
