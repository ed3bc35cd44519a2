"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal.api.v1.api import api_router
from portal.core.assessment.exceptions import (
    AssessmentError,
    ConfigurationError,
    InvalidStateError,
    ItemNotFoundError,
    SessionNotFoundError,
)
from portal.core.assessment.service import AssessmentService, build_assessment_service
from portal.core.auth import USER_ID_HEADER
from portal.core.config import settings
from portal.core.error_responses import ErrorMessages
from portal.core.logging_config import setup_logging
from portal.middleware import RequestLoggingMiddleware

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    Sessions live in process memory, so shutdown reports how many
    unfinished sessions are discarded.
    """
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting ({settings.ENV})")

    yield

    service: Optional[AssessmentService] = getattr(
        app.state, "assessment_service", None
    )
    remaining = len(service.sessions) if service else 0
    logger.info(f"Application shutting down with {remaining} sessions in memory")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "assessment",
        "description": "Adaptive type assessment sessions, responses and profiles",
    },
]


def _error_status(exc: AssessmentError) -> int:
    if isinstance(exc, (SessionNotFoundError, ItemNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, InvalidStateError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_application(service: Optional[AssessmentService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Pre-built assessment service. When omitted, one is built from
            settings, which loads and validates the item bank.

    Raises:
        ConfigurationError: If the item bank or assessment settings are unusable.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Adaptive Type Assessment API** - computerized adaptive testing of "
            "the four type dimensions.\n\n"
            "Each dimension is measured with a 2PL item response model: the next "
            "item is the most informative one at the current estimate, and a "
            "dimension stops once its estimate is precise enough or its item "
            "budget is spent.\n\n"
            "## Authentication\n\n"
            f"Requests carry the authenticated user id in the `{USER_ID_HEADER}` "
            "header, set by the upstream identity service."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    app.state.assessment_service = (
        service if service is not None else build_assessment_service(settings)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", USER_ID_HEADER, "X-Request-ID"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors.
        """
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            for error in exc.errors()
        ]
        logger.info(
            f"Request validation failed: {errors}",
            extra={"method": request.method, "path": str(request.url.path)},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )

    @app.exception_handler(AssessmentError)
    async def assessment_exception_handler(request: Request, exc: AssessmentError):
        """
        Handle assessment errors that escaped the endpoint.

        Configuration problems are server errors and get an error_id like any
        other unexpected failure; the rest map to client errors.
        """
        status_code = _error_status(exc)
        if isinstance(exc, ConfigurationError) or status_code >= 500:
            error_id = str(uuid.uuid4())
            logger.error(
                f"Assessment misconfigured [error_id={error_id}]: {exc}",
                extra={"error_id": error_id},
            )
            return JSONResponse(
                status_code=status_code,
                content={"detail": ErrorMessages.INTERNAL_ERROR, "error_id": error_id},
            )
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        Generates a unique error_id (UUID) for each exception so a specific
        failure can be traced in the logs. The error_id is included in the
        response body and logged with the full exception.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error_id": error_id,
            },
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
