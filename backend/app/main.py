"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.api import api_router
from app.core import observability
from app.core.analytics import AnalyticsTracker
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.middleware import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    - On startup: Configures logging and error tracking
    - On shutdown: Flushes pending error reports
    """
    setup_logging()
    observability.init_sentry()
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting ({settings.ENV})")

    yield

    observability.flush()
    logger.info("Application shutting down")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "assessments",
        "description": "Timed assessment sessions: start/resume, answers, proctoring events, submission and results",
    },
    {
        "name": "public",
        "description": "Share-link access for anonymous candidates",
    },
    {
        "name": "Admin - Sessions",
        "description": "Stale-session reaping, abandonment and certificate attachment",
    },
    {
        "name": "Admin - Analytics",
        "description": "Cohort analytics and live monitoring",
    },
]


def _track_error(request: Request, error_type: str, error_message: str) -> None:
    """Record a failed request; candidate_key is set by the auth dependency."""
    AnalyticsTracker.track_api_error(
        method=request.method,
        path=str(request.url.path),
        error_type=error_type,
        error_message=error_message,
        candidate_key=getattr(request.state, "candidate_key", None),
    )


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Assessment Session API** - timed, proctored assessment attempts.\n\n"
            "This API provides:\n"
            "* Eligibility-gated start and resume of assessment sessions\n"
            "* Answer recording, proctoring events and question view telemetry\n"
            "* Server-side time limits, grading and results\n"
            "* Cohort analytics for assessment owners\n\n"
            "## Authentication\n\n"
            "Session endpoints require a candidate JWT Bearer token. Anonymous "
            "candidates obtain one from the public share-link start endpoint. "
            "Admin endpoints require the `X-Admin-Token` header."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Configure CORS
    # Security: Explicitly list allowed methods and headers instead of wildcards
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Admin-Token", "X-Request-ID"],
    )

    # Configure Request Logging
    app.add_middleware(RequestLoggingMiddleware)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Return HTTP errors, passing structured details through unchanged.

        Engine outcomes carry a machine-readable ``code`` (and for cooldown
        denials ``cooldown_ends_at``) that clients branch on. Plain string
        details are wrapped as ``{"detail": ...}``. Only 5xx responses are
        reported to error tracking.
        """
        if exc.status_code >= 400:
            _track_error(request, "HTTPException", str(exc.detail))

        if exc.status_code >= 500:
            observability.capture_error(
                exc,
                context={
                    "path": str(request.url.path),
                    "method": request.method,
                    "status_code": exc.status_code,
                },
            )

        content = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Return 422 with a trimmed list of validation errors."""
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            for error in exc.errors()
        ]
        _track_error(request, "ValidationError", str(errors))
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        The response carries only an error_id; the same id is logged with the
        traceback and attached to the error report.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )
        _track_error(request, exc.__class__.__name__, str(exc))
        observability.capture_error(
            exc,
            context={
                "path": str(request.url.path),
                "method": request.method,
                "error_id": error_id,
            },
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "error_id": error_id},
        )

    @app.get("/")
    async def root():
        """
        Root endpoint.
        """
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": f"{settings.API_V1_PREFIX}/docs",
        }

    return app


app = create_application()
