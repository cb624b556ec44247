"""Health check endpoints."""

from fastapi import APIRouter, Request

from learnpath.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])

# Services the engine cannot serve without
REQUIRED_SERVICES = (
    "course_service",
    "enrollment_service",
    "attempt_service",
    "progress_service",
    "certification_service",
)


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - reports whether every core service is wired."""
    settings = get_settings()
    services_ready = all(
        getattr(request.app.state, name, None) is not None
        for name in REQUIRED_SERVICES
    )
    return {
        "status": "ready" if services_ready else "degraded",
        "services_ready": services_ready,
        "environment": settings.environment,
        "debug": settings.debug,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
