"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .rules import PrerequisiteNotMetError, ProgressError
from .service import ProgressService


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state.

    Args:
        request: FastAPI request

    Returns:
        ProgressService instance
    """
    app_state = request.app.state
    if not hasattr(app_state, "progress_service") or not app_state.progress_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return app_state.progress_service


# Type alias for dependency injection
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


def handle_progress_error(error: ProgressError) -> HTTPException:
    """Convert progress errors to HTTP exceptions.

    Prerequisite failures carry the blocking item in the detail.

    Args:
        error: Progress error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "prerequisite_not_met": status.HTTP_403_FORBIDDEN,
        "progress_record_not_found": status.HTTP_404_NOT_FOUND,
        "progress_conflict": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    detail: str | dict = error.message
    if isinstance(error, PrerequisiteNotMetError):
        detail = {
            "message": error.message,
            "blocking_kind": error.kind.value,
            "blocking_id": str(error.content_id),
            "blocking_order": error.order,
        }

    return HTTPException(
        status_code=status_code,
        detail=detail,
    )
