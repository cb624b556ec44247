"""LearnPath API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnpath.attempts.router import router as attempts_router
from learnpath.attempts.router import tests_router as attempts_tests_router
from learnpath.attempts.service import AttemptService
from learnpath.certification.router import router as certification_router
from learnpath.certification.service import CertificationService
from learnpath.config import get_settings
from learnpath.core.context import get_request_id
from learnpath.core.database import init_async_cassandra, shutdown_async_cassandra
from learnpath.core.logging import configure_structlog, get_logger
from learnpath.core.middleware import RequestContextMiddleware
from learnpath.core.redis import close_redis, connect_redis
from learnpath.courses.router import router as courses_router
from learnpath.courses.router import sections_router, tests_admin_router
from learnpath.courses.service import CourseService
from learnpath.enrollments.router import router as enrollments_router
from learnpath.enrollments.service import EnrollmentService
from learnpath.health import router as health_router
from learnpath.progress.router import router as progress_router
from learnpath.progress.service import ProgressService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


class AppState:
    """Application state container."""

    cassandra_session: Any = None
    course_service: CourseService | None = None
    enrollment_service: EnrollmentService | None = None
    attempt_service: AttemptService | None = None
    progress_service: ProgressService | None = None
    certification_service: CertificationService | None = None


app_state = AppState()


def build_services(session: Any, redis_client: Any = None) -> AppState:
    """Wire the engine's services over one Cassandra session.

    Order matters: attempts need courses and enrollments, progress needs
    attempts, certification needs progress.
    """
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    state = AppState()
    state.cassandra_session = session
    state.course_service = CourseService(session=session, keyspace=keyspace)
    state.enrollment_service = EnrollmentService(session=session, keyspace=keyspace)
    state.attempt_service = AttemptService(
        session=session,
        keyspace=keyspace,
        course_service=state.course_service,
        enrollment_service=state.enrollment_service,
    )
    state.progress_service = ProgressService(
        session=session,
        keyspace=keyspace,
        course_service=state.course_service,
        enrollment_service=state.enrollment_service,
        attempt_service=state.attempt_service,
        aggregate_max_retries=settings.progress_aggregate_max_retries,
    )
    state.certification_service = CertificationService(
        session=session,
        keyspace=keyspace,
        course_service=state.course_service,
        enrollment_service=state.enrollment_service,
        progress_service=state.progress_service,
        redis=redis_client,
        waiting_period_days=settings.certificate_waiting_period_days,
        id_max_retries=settings.certificate_id_max_retries,
        verify_cache_seconds=settings.certificate_verify_cache_seconds,
    )
    return state


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global app_state  # noqa: PLW0603

    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is optional (verification cache only)
    redis_client = await connect_redis(settings)

    # Initialize Cassandra (async)
    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        app_state = build_services(session, redis_client)
        app.state.course_service = app_state.course_service
        app.state.enrollment_service = app_state.enrollment_service
        app.state.attempt_service = app_state.attempt_service
        app.state.progress_service = app_state.progress_service
        app.state.certification_service = app_state.certification_service
        logger.info(
            "services_initialized",
            redis_enabled=redis_client is not None,
        )
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await close_redis(redis_client)
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Never expose stack traces in responses; handlers below log details.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Learning progress, assessment grading and certification API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            message: Any = "Internal server error"
        else:
            message = exc.detail

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": message,
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions."""
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(sections_router)
    app.include_router(tests_admin_router)
    app.include_router(enrollments_router)
    app.include_router(progress_router)
    app.include_router(attempts_tests_router)
    app.include_router(attempts_router)
    app.include_router(certification_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "LearnPath API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn (``learnpath-api`` console script)."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "learnpath.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_config=None,
    )
