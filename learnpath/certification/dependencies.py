"""FastAPI dependencies for certification.

Provides dependency injection for:
- Certification service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CertificationError, CertificationService


async def get_certification_service(request: Request) -> CertificationService:
    """Get certification service from app state."""
    app_state = request.app.state
    if (
        not hasattr(app_state, "certification_service")
        or not app_state.certification_service
    ):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Certification service not available",
        )
    return app_state.certification_service


# Type alias for dependency injection
CertificationServiceDep = Annotated[
    CertificationService, Depends(get_certification_service)
]


def handle_certification_error(error: CertificationError) -> HTTPException:
    """Convert certification errors to HTTP exceptions."""
    status_map = {
        "certificate_not_found": status.HTTP_404_NOT_FOUND,
        "template_not_found": status.HTTP_404_NOT_FOUND,
        "holder_not_found": status.HTTP_404_NOT_FOUND,
        "template_exists": status.HTTP_409_CONFLICT,
        "already_issued": status.HTTP_409_CONFLICT,
        "issuance_conflict": status.HTTP_409_CONFLICT,
        "not_eligible": status.HTTP_400_BAD_REQUEST,
        "certificate_id_exhausted": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
